"""Rule pack loading from YAML."""

from __future__ import annotations

import yaml
from pydantic import ValidationError
from sqlmodel import Session

from trust_anchor.core.errors import BadRequestError
from trust_anchor.core.models import TransactionRule

from .schemas import RuleCreate


class RulePackLoader:
    """Loads and validates transaction rules from YAML documents.

    A document holds either a single rule mapping, a list of rules, or a pack
    mapping with a ``rules`` list.
    """

    def parse(self, content: str) -> list[RuleCreate]:
        """Parse YAML text into validated rule definitions."""
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise BadRequestError(f"Invalid YAML: {e}") from e

        if data is None:
            return []
        if isinstance(data, dict) and "rules" in data:
            items = data["rules"] or []
        elif isinstance(data, list):
            items = data
        else:
            items = [data]

        rules = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise BadRequestError(f"Rule #{index} is not a mapping")
            try:
                rules.append(RuleCreate(**item))
            except ValidationError as e:
                raise BadRequestError(f"Rule #{index} ({item.get('name', 'unnamed')}) is invalid: {e}") from e
        return rules


def load_rule_pack(session: Session, organization_id: str | None, content: str) -> list[TransactionRule]:
    """Parse a YAML rule pack and store every rule in ``organization_id``.

    The pack is all-or-nothing: any invalid rule rejects the whole import.
    """
    definitions = RulePackLoader().parse(content)
    records = [
        TransactionRule(
            organization_id=organization_id,
            **definition.model_dump(mode="json", exclude={"organization_id"}),
        )
        for definition in definitions
    ]
    for record in records:
        session.add(record)
    session.commit()
    for record in records:
        session.refresh(record)
    return records
