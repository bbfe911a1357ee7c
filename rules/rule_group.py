"""
Rule group model
Upstream rule groups extended with the partial_response_strategy field,
decoded without breaking round-trip encoding of files that never use it.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from rules.errors import STRATEGY_FIELD, RuleGroupDecodeError, StrategyValidationError
from schemas.rulefmt import RuleGroupSpec, describe_validation_error
from schemas.strategy import DEFAULT_STRATEGY, PartialResponseStrategy, resolve_strategy


@dataclass(frozen=True)
class StrategySetting:
    """
    Strategy as written in the rule file.

    ``explicit`` tells a group that spelled out its strategy apart from one that
    left it out. Both route the same way, only explicit values are encoded.
    """

    value: PartialResponseStrategy = DEFAULT_STRATEGY
    explicit: bool = False

    @classmethod
    def unset(cls) -> "StrategySetting":
        return cls()

    @classmethod
    def of(cls, strategy: PartialResponseStrategy) -> "StrategySetting":
        return cls(value=strategy, explicit=True)


@dataclass(frozen=True)
class RuleGroup:
    """A named group of rules tagged with its source file and strategy"""

    name: str
    rules: List[Dict[str, Any]] = field(default_factory=list)
    interval: Optional[str] = None
    limit: Optional[int] = None
    original_file: str = ""
    strategy: StrategySetting = field(default_factory=StrategySetting.unset)

    @property
    def partial_response_strategy(self) -> PartialResponseStrategy:
        return self.strategy.value

    @classmethod
    def from_dict(cls, data: Any, original_file: str = "") -> "RuleGroup":
        """
        Decode one group document.

        The upstream fields are decoded first, the strategy extension second.

        Raises:
            RuleGroupDecodeError: document does not match the schema
        """
        if not isinstance(data, dict):
            raise RuleGroupDecodeError(
                f"failed to unmarshal rule group: expected a mapping, got {type(data).__name__}"
            )

        name = data.get("name") if isinstance(data.get("name"), str) else None
        upstream = {key: value for key, value in data.items() if key != STRATEGY_FIELD}
        try:
            spec = RuleGroupSpec.model_validate(upstream)
        except ValidationError as e:
            detail = e.errors()[0] if e.errors() else {}
            loc = detail.get("loc") or ()
            raise RuleGroupDecodeError(
                f"failed to unmarshal rule group: {describe_validation_error(e)}",
                field=str(loc[0]) if loc else None,
                group=name,
            ) from e

        strategy = StrategySetting.unset()
        if STRATEGY_FIELD in data:
            try:
                strategy = StrategySetting.of(resolve_strategy(data[STRATEGY_FIELD]))
            except StrategyValidationError as e:
                raise RuleGroupDecodeError(str(e), field=STRATEGY_FIELD, group=spec.name) from e

        return cls(
            name=spec.name,
            rules=list(spec.rules),
            interval=spec.interval,
            limit=spec.limit,
            original_file=original_file,
            strategy=strategy,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Encode in upstream field order, strategy last and only when explicit"""
        data: Dict[str, Any] = {"name": self.name}
        if self.interval is not None:
            data["interval"] = self.interval
        if self.limit is not None:
            data["limit"] = self.limit
        data["rules"] = list(self.rules)
        if self.strategy.explicit:
            data[STRATEGY_FIELD] = self.strategy.value.value
        return data

    def without_strategy(self) -> "RuleGroup":
        """Copy with the extension field dropped, as the upstream engine expects"""
        return replace(self, strategy=StrategySetting.unset())


@dataclass(frozen=True)
class RuleGroups:
    """All rule groups of one rule file, in file order"""

    groups: List[RuleGroup] = field(default_factory=list)

    def __iter__(self):
        return iter(self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    @classmethod
    def from_dict(cls, data: Any, original_file: str = "") -> "RuleGroups":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise RuleGroupDecodeError(
                f"failed to unmarshal rule file: expected a mapping, got {type(data).__name__}"
            )

        unknown = sorted(str(key) for key in data if key != "groups")
        if unknown:
            raise RuleGroupDecodeError(
                f"failed to unmarshal rule file: unknown field {unknown[0]!r}", field=unknown[0]
            )

        raw_groups = data.get("groups")
        if raw_groups is None:
            return cls()
        if not isinstance(raw_groups, list):
            raise RuleGroupDecodeError(
                "failed to unmarshal rule file: 'groups' must be a list", field="groups"
            )

        groups = [RuleGroup.from_dict(item, original_file=original_file) for item in raw_groups]
        return cls(groups=groups)

    @classmethod
    def from_yaml(cls, content: str, original_file: str = "") -> "RuleGroups":
        """
        Decode a whole rule file.

        Raises:
            yaml.YAMLError: content is not valid YAML
            RuleGroupDecodeError: content does not match the schema
        """
        return cls.from_dict(yaml.safe_load(content), original_file=original_file)

    def to_dict(self) -> Dict[str, Any]:
        return {"groups": [group.to_dict() for group in self.groups]}

    def to_yaml(self) -> str:
        return yaml.safe_dump(
            self.to_dict(), default_flow_style=False, allow_unicode=True, sort_keys=False
        )
