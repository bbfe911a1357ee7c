"""
Upstream rule file schema
Prometheus-style rule file structures, validated with pydantic
"""

import re
from datetime import timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_DURATION_RE = re.compile(
    r"^((?P<y>\d+)y)?((?P<w>\d+)w)?((?P<d>\d+)d)?((?P<h>\d+)h)?"
    r"((?P<m>\d+)m)?((?P<s>\d+)s)?((?P<ms>\d+)ms)?$"
)

_UNIT_SECONDS = {
    "y": 365 * 24 * 3600,
    "w": 7 * 24 * 3600,
    "d": 24 * 3600,
    "h": 3600,
    "m": 60,
    "s": 1,
    "ms": 0.001,
}


def parse_duration(value: str) -> timedelta:
    """Parse a Prometheus duration such as ``1m`` or ``1h30m``"""
    if value == "0":
        return timedelta(0)

    match = _DURATION_RE.match(value) if isinstance(value, str) and value else None
    if match is None:
        raise ValueError(f"not a valid duration string: {value!r}")

    seconds = 0.0
    for unit, amount in match.groupdict().items():
        if amount:
            seconds += int(amount) * _UNIT_SECONDS[unit]
    return timedelta(seconds=seconds)


def format_duration(value: timedelta) -> str:
    """Render a timedelta in the compact Prometheus form"""
    total_ms = int(round(value.total_seconds() * 1000))
    if total_ms == 0:
        return "0s"

    parts = []
    for unit in ("y", "w", "d", "h", "m", "s"):
        unit_ms = int(_UNIT_SECONDS[unit] * 1000)
        amount, total_ms = divmod(total_ms, unit_ms)
        if amount:
            parts.append(f"{amount}{unit}")
    if total_ms:
        parts.append(f"{total_ms}ms")
    return "".join(parts)


class RuleSpec(BaseModel):
    """A single recording or alerting rule"""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    record: Optional[str] = None
    alert: Optional[str] = None
    expr: str = ""
    for_: Optional[str] = Field(default=None, alias="for")
    keep_firing_for: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)

    @field_validator("expr", mode="before")
    @classmethod
    def _expr_as_text(cls, v: Any) -> Any:
        # YAML turns bare numeric expressions like `1` into ints
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @model_validator(mode="after")
    def _check_kind(self) -> "RuleSpec":
        if bool(self.record) == bool(self.alert):
            raise ValueError("one of 'record' or 'alert' must be set")
        if not self.expr.strip():
            raise ValueError("field 'expr' must be set in rule")
        if self.record and (self.for_ or self.keep_firing_for or self.annotations):
            raise ValueError(f"invalid field for recording rule {self.record!r}")
        for value in (self.for_, self.keep_firing_for):
            if value is not None:
                parse_duration(value)
        return self


class RuleGroupSpec(BaseModel):
    """A named group of rules as defined by the upstream schema"""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    interval: Optional[str] = None
    limit: Optional[int] = None
    rules: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("interval")
    @classmethod
    def _check_interval(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_duration(v)
        return v

    @field_validator("rules", mode="before")
    @classmethod
    def _rules_default(cls, v: Any) -> Any:
        return [] if v is None else v


class RuleFileSpec(BaseModel):
    """Top level of a rule file"""

    model_config = ConfigDict(extra="forbid")

    groups: List[RuleGroupSpec] = Field(default_factory=list)

    @field_validator("groups", mode="before")
    @classmethod
    def _groups_default(cls, v: Any) -> Any:
        return [] if v is None else v

    def validate_rules(self) -> List[str]:
        """
        Strict checks the upstream engine applies on top of the structure.

        Returns:
            problem descriptions, empty when the file is valid
        """
        problems: List[str] = []
        seen = set()
        for group in self.groups:
            if group.name in seen:
                problems.append(f"{group.name}: repeated in the same file")
            seen.add(group.name)

            for index, rule in enumerate(group.rules):
                try:
                    RuleSpec.model_validate(rule)
                except ValueError as e:
                    problems.append(f"group {group.name!r}, rule {index}: {describe_validation_error(e)}")
        return problems


def describe_validation_error(error: ValueError) -> str:
    errors = getattr(error, "errors", None)
    if callable(errors):
        details = errors()
        if details:
            detail = details[0]
            loc = ".".join(str(part) for part in detail.get("loc", ()))
            message = detail.get("msg", str(error))
            return f"{loc}: {message}" if loc else message
    return str(error)
