# api/main.py
import logging
import threading
import time
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException

from config.settings import get_settings
from engine.manager import Manager
from engine.rule_engine import FileRuleEngine
from rules.errors import UpdateError
from rules.loader import expand_rule_files
from schemas.ruler import ReloadResponse, RuleGroupsData, RuleGroupView, RulerConfig, RulesResponse
from schemas.strategy import PartialResponseStrategy
from services.structured_logging import setup_structured_logging

APP_TITLE = "Rule Manager API"
APP_VERSION = "1.0.0"

logger = logging.getLogger(__name__)


class RuleReloader:
    """Serializes manager updates, the manager itself assumes a single writer"""

    def __init__(self, manager: Manager, config: RulerConfig):
        self.manager = manager
        self.config = config
        self._lock = threading.Lock()
        self.last_success: Optional[float] = None
        self.last_error: Optional[str] = None

    def reload(self) -> int:
        """
        Re-expand the rule file patterns and update the manager.

        Returns:
            number of rule files considered

        Raises:
            UpdateError: some files or engines failed, the rest was applied
        """
        with self._lock:
            files = expand_rule_files(self.config.rule_files, base_dir=self.manager.base_dir)
            try:
                self.manager.update(self.config.evaluation_timedelta, files)
            except UpdateError as e:
                self.last_error = str(e)
                raise
            self.last_error = None
            self.last_success = time.time()
            return len(files)


def create_app(config: Optional[RulerConfig] = None) -> FastAPI:
    """Build the API around a manager with one file engine per strategy"""
    config = config or get_settings().to_ruler_config()

    manager = Manager(config.data_dir, work_dir=config.work_dir)
    for strategy in PartialResponseStrategy:
        manager.bind_engine(strategy, FileRuleEngine(name=strategy.value.lower()))
    reloader = RuleReloader(manager, config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            files = reloader.reload()
            logger.info(f"Initial rule load finished: {files} files")
        except UpdateError as e:
            logger.error(f"Initial rule load finished with errors: {e}")
        yield

    app = FastAPI(title=APP_TITLE, version=APP_VERSION, lifespan=lifespan)
    app.state.manager = manager
    app.state.reloader = reloader

    @app.get("/health")
    @app.get("/-/healthy")
    async def health_check():
        return {
            "status": "ok",
            "service": APP_TITLE,
            "version": APP_VERSION,
            "last_reload_success": reloader.last_success,
            "last_reload_error": reloader.last_error,
            "timestamp": time.time(),
        }

    @app.get("/api/v1/rules", response_model=RulesResponse)
    async def list_rules():
        groups = sorted(manager.rule_groups(), key=lambda g: (g.name, g.original_file))
        views = [
            RuleGroupView(
                name=group.name,
                file=group.original_file,
                partial_response_strategy=group.partial_response_strategy,
                rules=group.rules,
            )
            for group in groups
        ]
        return RulesResponse(data=RuleGroupsData(groups=views))

    @app.post("/-/reload", response_model=ReloadResponse)
    def reload_rules():
        try:
            files = reloader.reload()
        except UpdateError as e:
            logger.error(f"Rule reload failed: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        return ReloadResponse(files=files, groups=len(manager.rule_groups()))

    return app


def build_default_app() -> FastAPI:
    load_dotenv()
    config = get_settings().to_ruler_config()
    setup_structured_logging(log_file=config.log_file, log_level=config.log_level)
    return create_app(config)


app = build_default_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=10902)
