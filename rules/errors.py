"""
Rule loading errors

Every failure raised while loading, decoding or routing rule files derives
from RuleError so a reload loop can catch the whole family at once.
"""

from typing import Any, Iterable, List, Optional

STRATEGY_FIELD = "partial_response_strategy"


class RuleError(Exception):
    """Base class for rule loading failures"""


class StrategyValidationError(RuleError, ValueError):
    """Unknown partial response strategy token"""

    field = STRATEGY_FIELD

    def __init__(self, token: Any, allowed: Iterable[str]):
        self.token = token
        self.allowed = list(allowed)
        super().__init__(
            f"failed to unmarshal '{self.field}'. "
            f"Possible values are {','.join(self.allowed)}. Got: {token}"
        )


class RuleGroupDecodeError(RuleError, ValueError):
    """A rule group document does not match the rule file schema"""

    def __init__(self, message: str, field: Optional[str] = None, group: Optional[str] = None):
        self.field = field
        self.group = group
        if group:
            message = f"{message} (group {group!r})"
        super().__init__(message)


class RuleFileError(RuleError):
    """Failure tied to a single rule file"""

    def __init__(self, path: str, cause: BaseException):
        self.path = str(path)
        self.cause = cause
        super().__init__(f"{self.path}: {self._describe(cause)}")

    @staticmethod
    def _describe(cause: BaseException) -> str:
        return str(cause)


class RuleFileIOError(RuleFileError):
    """Rule file could not be read"""

    @staticmethod
    def _describe(cause: BaseException) -> str:
        strerror = getattr(cause, "strerror", None)
        return strerror.lower() if strerror else str(cause)


class RuleFileParseError(RuleFileError):
    """Rule file content could not be decoded"""


class EngineReloadError(RuleError):
    """An engine rejected the rule files handed to it"""

    def __init__(self, message: str, strategy: Optional[str] = None, problems: Optional[List[str]] = None):
        self.strategy = strategy
        self.problems = list(problems or [])
        if strategy:
            message = f"strategy {strategy}, update rules: {message}"
        super().__init__(message)


class UpdateError(RuleError):
    """All failures collected during one manager update"""

    def __init__(self, errors: Iterable[BaseException]):
        self.errors = list(errors)
        super().__init__(
            f"{len(self.errors)} errors: " + "; ".join(str(err) for err in self.errors)
        )

    def __iter__(self):
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)
