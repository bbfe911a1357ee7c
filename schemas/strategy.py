"""
Partial response strategy
Controls how rule evaluation behaves when only some data shards respond.
"""

from enum import Enum
from typing import Any

from rules.errors import StrategyValidationError


class PartialResponseStrategy(str, Enum):
    """Partial response strategy"""

    ABORT = "ABORT"
    WARN = "WARN"

    @classmethod
    def values(cls) -> list:
        return [member.value for member in cls]


DEFAULT_STRATEGY = PartialResponseStrategy.ABORT


def resolve_strategy(token: Any) -> PartialResponseStrategy:
    """
    Resolve a textual strategy token.

    Empty or missing tokens resolve to ABORT, stopping evaluation rather than
    silently serving incomplete results. Matching ignores case.

    Raises:
        StrategyValidationError: token is not a known strategy
    """
    if token is None or token == "":
        return DEFAULT_STRATEGY
    if not isinstance(token, str):
        raise StrategyValidationError(token, PartialResponseStrategy.values())

    try:
        return PartialResponseStrategy(token.upper())
    except ValueError:
        raise StrategyValidationError(token, PartialResponseStrategy.values()) from None
