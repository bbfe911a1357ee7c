"""
Rule engine collaborator

The manager only needs two things from an engine: replace its rule set from a
list of files, and report the groups it currently holds. FileRuleEngine is a
reference engine that loads and validates rule files without evaluating them.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

import yaml
from pydantic import ValidationError

from rules.errors import EngineReloadError
from schemas.rulefmt import RuleFileSpec, describe_validation_error, format_duration, parse_duration

logger = logging.getLogger(__name__)


@runtime_checkable
class RuleEngine(Protocol):
    """Interface of an engine instance bound to one strategy"""

    def reload(self, evaluation_interval: timedelta, files: Sequence[str]) -> None:
        """Replace the loaded rule set, raising on rejection"""
        ...

    def current_groups(self) -> Sequence[Any]:
        """Groups currently loaded, each exposing ``name`` and ``file``"""
        ...


@dataclass(frozen=True)
class EngineGroup:
    """A rule group as held by an engine"""

    name: str
    file: str
    interval: timedelta
    rules: List[Dict[str, Any]] = field(default_factory=list)
    limit: Optional[int] = None


class FileRuleEngine:
    """Engine that loads rule files strictly and keeps the last good rule set"""

    def __init__(self, name: str = "default"):
        self.name = name
        self._groups: List[EngineGroup] = []
        self._lock = threading.Lock()
        self.last_reload: Optional[datetime] = None

    def reload(self, evaluation_interval: timedelta, files: Sequence[str]) -> None:
        """
        Load the given files and swap them in as the new rule set.

        The swap only happens when every file is valid, otherwise the previous
        rule set is kept.

        Raises:
            EngineReloadError: at least one file was rejected
        """
        if evaluation_interval <= timedelta(0):
            raise EngineReloadError(f"evaluation interval must be positive, got {evaluation_interval}")

        problems: List[str] = []
        groups: List[EngineGroup] = []
        for path in files:
            try:
                groups.extend(self._load(path, evaluation_interval))
            except EngineReloadError as e:
                problems.extend(e.problems or [str(e)])

        if problems:
            logger.error(f"Engine {self.name} rejected {len(problems)} rule file problems, keeping previous rules")
            raise EngineReloadError("; ".join(problems), problems=problems)

        groups.sort(key=lambda g: (g.file, g.name))
        with self._lock:
            self._groups = groups
            self.last_reload = datetime.now()

        logger.info(
            f"Engine {self.name} loaded {len(groups)} rule groups from {len(files)} files, "
            f"default interval {format_duration(evaluation_interval)}"
        )

    def current_groups(self) -> List[EngineGroup]:
        with self._lock:
            return list(self._groups)

    def _load(self, path: str, evaluation_interval: timedelta) -> List[EngineGroup]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            reason = e.strerror.lower() if e.strerror else str(e)
            raise EngineReloadError(f"{path}: {reason}", problems=[f"{path}: {reason}"]) from e
        except (UnicodeDecodeError, yaml.YAMLError) as e:
            raise EngineReloadError(f"{path}: {e}", problems=[f"{path}: {e}"]) from e

        try:
            spec = RuleFileSpec.model_validate(data if data is not None else {})
        except ValidationError as e:
            message = f"{path}: {describe_validation_error(e)}"
            raise EngineReloadError(message, problems=[message]) from e

        problems = [f"{path}: {problem}" for problem in spec.validate_rules()]
        if problems:
            raise EngineReloadError("; ".join(problems), problems=problems)

        return [
            EngineGroup(
                name=group.name,
                file=path,
                interval=parse_duration(group.interval) if group.interval else evaluation_interval,
                rules=list(group.rules),
                limit=group.limit,
            )
            for group in spec.groups
        ]
