"""
Rule manager
Loads rule files, splits their groups by partial response strategy and hands
each engine the rule files for its own strategy.
"""

import logging
import os
import shutil
from collections import defaultdict
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from engine.rule_engine import RuleEngine
from rules.errors import EngineReloadError, RuleError, RuleFileIOError, UpdateError
from rules.loader import load_file
from rules.rule_group import RuleGroup, RuleGroups, StrategySetting
from schemas.rulefmt import format_duration
from schemas.strategy import PartialResponseStrategy
from services.structured_logging import ReloadLogContext

logger = logging.getLogger(__name__)

WORK_DIR_NAME = ".tmp-rules"


def _interval_text(interval) -> Optional[str]:
    if isinstance(interval, timedelta):
        return format_duration(interval)
    return interval


class Manager:
    """
    Routes rule groups to one engine per partial response strategy.

    Upstream engines reject the strategy field, so every update writes
    upstream-only copies of each file's groups under
    ``<work_dir>/<STRATEGY>/<original absolute path>`` and reloads the engine of
    that strategy with those copies. A file holding groups of several
    strategies is split between engines this way. The engines stay the only
    holders of loaded rules; original paths are recovered from the copy paths.
    """

    def __init__(self, base_dir: Union[str, Path], work_dir: Optional[Union[str, Path]] = None):
        self.base_dir = Path(os.path.abspath(base_dir))
        self.work_dir = Path(os.path.abspath(work_dir)) if work_dir else self.base_dir / WORK_DIR_NAME
        self._engines: Dict[PartialResponseStrategy, RuleEngine] = {}

    def bind_engine(self, strategy: PartialResponseStrategy, engine: RuleEngine) -> None:
        """Bind an engine to a strategy, replacing any previous binding"""
        if strategy in self._engines:
            logger.info(f"Replacing engine bound to strategy {strategy.value}")
        self._engines[strategy] = engine

    @property
    def strategies(self) -> List[PartialResponseStrategy]:
        return list(self._engines)

    def update(self, evaluation_interval: timedelta, files: Sequence[Union[str, Path]]) -> None:
        """
        Load the given rule files and reload every bound engine once.

        Files that fail to load contribute no groups and do not stop the
        others. Engines are reloaded independently, a rejected reload leaves
        that engine on its previous rules.

        Raises:
            UpdateError: one or more files or engine reloads failed; raised
                only after every engine was reloaded
        """
        errors: List[RuleError] = []

        with ReloadLogContext() as ctx:
            by_strategy: Dict[PartialResponseStrategy, Dict[str, List[RuleGroup]]] = defaultdict(dict)
            files_failed = 0
            groups_loaded = 0
            seen = set()

            for path in files:
                path = self._resolve(path)
                if path in seen:
                    continue
                seen.add(path)

                try:
                    groups = load_file(path)
                except RuleError as e:
                    logger.warning(f"Skipping rule file: {e}")
                    errors.append(e)
                    files_failed += 1
                    continue

                for group in groups:
                    per_file = by_strategy[group.partial_response_strategy]
                    per_file.setdefault(group.original_file, []).append(group)
                    groups_loaded += 1

            for strategy in by_strategy:
                if strategy not in self._engines:
                    skipped = sum(len(groups) for groups in by_strategy[strategy].values())
                    logger.warning(f"No engine bound for strategy {strategy.value}, skipping {skipped} rule groups")

            engines_reloaded = 0
            for strategy, engine in list(self._engines.items()):
                with ReloadLogContext(reload_id=ctx.reload_id, strategy=strategy.value):
                    strategy_files = self._write_strategy_files(strategy, by_strategy.get(strategy, {}), errors)
                    try:
                        engine.reload(evaluation_interval, strategy_files)
                    except Exception as e:
                        logger.error(f"Engine for strategy {strategy.value} rejected reload: {e}")
                        reload_error = EngineReloadError(
                            str(e), strategy=strategy.value, problems=getattr(e, "problems", None)
                        )
                        reload_error.__cause__ = e
                        errors.append(reload_error)
                        continue
                engines_reloaded += 1

            logger.info(
                f"Rule update finished: {len(files)} files, {files_failed} failed, "
                f"{groups_loaded} groups, {engines_reloaded}/{len(self._engines)} engines reloaded",
                extra={
                    "files_total": len(files),
                    "files_failed": files_failed,
                    "groups_loaded": groups_loaded,
                    "engines_reloaded": engines_reloaded,
                    "errors_total": len(errors),
                    "duration_ms": ctx.duration_ms,
                },
            )

        if errors:
            raise UpdateError(errors)

    def rule_groups(self) -> List[RuleGroup]:
        """
        Groups currently loaded by all bound engines.

        Each group carries the strategy of the engine that holds it. No order
        is guaranteed, callers sort as needed.
        """
        result: List[RuleGroup] = []
        for strategy, engine in list(self._engines.items()):
            for group in engine.current_groups():
                result.append(
                    RuleGroup(
                        name=group.name,
                        rules=list(getattr(group, "rules", None) or []),
                        interval=_interval_text(getattr(group, "interval", None)),
                        limit=getattr(group, "limit", None),
                        original_file=self._original_file(strategy, group.file),
                        strategy=StrategySetting.of(strategy),
                    )
                )
        return result

    def _resolve(self, path: Union[str, Path]) -> str:
        path = os.fspath(path)
        if not os.path.isabs(path):
            path = os.path.join(self.base_dir, path)
        return os.path.abspath(path)

    def _strategy_dir(self, strategy: PartialResponseStrategy) -> Path:
        return self.work_dir / strategy.value

    def _write_strategy_files(
        self,
        strategy: PartialResponseStrategy,
        groups_by_file: Dict[str, List[RuleGroup]],
        errors: List[RuleError],
    ) -> List[str]:
        """Replace the strategy's copy directory, one upstream-only file per original"""
        strategy_dir = self._strategy_dir(strategy)
        shutil.rmtree(strategy_dir, ignore_errors=True)

        written: List[str] = []
        for original, groups in groups_by_file.items():
            target = strategy_dir / Path(original).relative_to(Path(original).anchor)
            content = RuleGroups(groups=[group.without_strategy() for group in groups]).to_yaml()
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
            except OSError as e:
                logger.error(f"Cannot write {strategy.value} copy of {original}: {e}")
                errors.append(RuleFileIOError(str(target), e))
                continue
            written.append(str(target))

        return sorted(set(written))

    def _original_file(self, strategy: PartialResponseStrategy, engine_file: str) -> str:
        strategy_dir = self._strategy_dir(strategy)
        try:
            relative = Path(engine_file).relative_to(strategy_dir)
        except ValueError:
            # not one of ours, report as is
            return engine_file
        return str(Path(os.sep) / relative)
