"""
Transaction enrichment: geolocation of the originating IP and the sending
account's recent history.

The result is the ``enriched`` mapping the rule engine reads for the
``ip_address`` and ``velocity`` attributes. A failed geolocation lookup leaves
``geo_ip`` empty rather than failing the screening.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlmodel import Session, select

from trust_anchor.core.errors import IntegrationError
from trust_anchor.core.models import Transaction, utcnow
from trust_anchor.providers.clients import GeoIPClient

logger = logging.getLogger(__name__)

HIGH_FREQUENCY_COUNT = 10
HIGH_VOLUME_AMOUNT = 100000
REPEAT_FLAGGING_COUNT = 3
VPN_RISK_SCORE = 30
BASE_IP_RISK_SCORE = 5


def geo_ip(geoip: GeoIPClient | None, ip_address: str | None) -> dict | None:
    if not ip_address or geoip is None:
        return None
    try:
        data = geoip.lookup(ip_address)
    except IntegrationError as e:
        logger.warning("Geo-IP lookup for %s failed: %s", ip_address, e.message)
        return None

    is_vpn = bool(data.get("isVPN") or data.get("is_vpn"))
    is_proxy = bool(data.get("isProxy") or data.get("proxy") or data.get("is_proxy"))
    return {
        "country": data.get("country"),
        "country_code": data.get("countryCode"),
        "city": data.get("city"),
        "isp": data.get("isp"),
        "is_vpn": is_vpn,
        "is_proxy": is_proxy,
        "risk_score": VPN_RISK_SCORE if is_vpn or is_proxy else BASE_IP_RISK_SCORE,
    }


def velocity_history(session: Session, organization_id: str | None, from_account: str | None) -> dict | None:
    """Counts and volumes for the account over the last 24 hours and 7 days."""
    if not from_account:
        return None

    now = utcnow()
    week = list(
        session.exec(
            select(Transaction).where(
                Transaction.organization_id == organization_id,
                Transaction.from_account == from_account,
                Transaction.created_date >= now - timedelta(days=7),
            )
        ).all()
    )
    day = [t for t in week if t.created_date >= now - timedelta(hours=24)]

    volume_24h = sum(t.amount or 0 for t in day)
    flagged_7d = sum(1 for t in week if t.status == "flagged")
    return {
        "transactions_24h": len(day),
        "transactions_7d": len(week),
        "volume_24h": volume_24h,
        "volume_7d": sum(t.amount or 0 for t in week),
        "flagged_24h": sum(1 for t in day if t.status == "flagged"),
        "blocked_24h": sum(1 for t in day if t.status == "blocked"),
        "velocity_risk": {
            "high_frequency": len(day) > HIGH_FREQUENCY_COUNT,
            "high_volume": volume_24h > HIGH_VOLUME_AMOUNT,
            "repeat_flagging": flagged_7d > REPEAT_FLAGGING_COUNT,
        },
    }


def enrich_transaction(
    session: Session,
    organization_id: str | None,
    geoip: GeoIPClient | None,
    ip_address: str | None = None,
    from_account: str | None = None,
) -> dict:
    return {
        "geo_ip": geo_ip(geoip, ip_address),
        "velocity_history": velocity_history(session, organization_id, from_account),
    }
