"""Functions domain - invoke server functions by name."""

from .registry import FUNCTIONS, FunctionContext, invoke, register
from .router import router

__all__ = ["router", "FUNCTIONS", "FunctionContext", "invoke", "register"]
