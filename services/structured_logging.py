"""
结构化日志模块
以 JSON 行输出日志，携带重载 ID、分区策略和每次重载的计数
"""

import json
import logging
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

# 上下文变量
current_reload_id: ContextVar[Optional[str]] = ContextVar("current_reload_id", default=None)
current_strategy: ContextVar[Optional[str]] = ContextVar("current_strategy", default=None)

_EXTRA_FIELDS = (
    "duration_ms",
    "files_total",
    "files_failed",
    "groups_loaded",
    "engines_reloaded",
    "errors_total",
    "extra_data",
)


@dataclass
class StructuredLogEntry:
    """结构化日志条目"""

    timestamp: str
    level: str
    logger: str
    message: str
    reload_id: Optional[str] = None
    strategy: Optional[str] = None

    # 重载计数
    duration_ms: Optional[float] = None
    files_total: Optional[int] = None
    files_failed: Optional[int] = None
    groups_loaded: Optional[int] = None
    engines_reloaded: Optional[int] = None
    errors_total: Optional[int] = None

    # 错误信息
    error_type: Optional[str] = None
    error_details: Optional[str] = None
    stack_trace: Optional[str] = None

    # 额外数据
    extra_data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        data = asdict(self)
        # 移除None值
        return {k: v for k, v in data.items() if v is not None}

    def to_json(self) -> str:
        """转换为JSON字符串"""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"), default=str)


class StructuredFormatter(logging.Formatter):
    """结构化日志格式化器"""

    def format(self, record: logging.LogRecord) -> str:
        """格式化日志记录"""
        # 基础信息
        log_entry = StructuredLogEntry(
            timestamp=datetime.fromtimestamp(record.created).isoformat(),
            level=record.levelname,
            logger=record.name,
            message=record.getMessage(),
            reload_id=current_reload_id.get(),
            strategy=getattr(record, "strategy", None) or current_strategy.get(),
        )

        # 从record中提取额外信息
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                setattr(log_entry, name, getattr(record, name))

        if record.exc_info:
            log_entry.error_type = record.exc_info[0].__name__ if record.exc_info[0] else None
            log_entry.error_details = str(record.exc_info[1]) if record.exc_info[1] else None
            log_entry.stack_trace = "".join(traceback.format_exception(*record.exc_info))

        return log_entry.to_json()


class ReloadLogContext:
    """日志上下文管理器，块内日志带上重载 ID 和策略"""

    def __init__(self, reload_id: Optional[str] = None, strategy: Optional[str] = None):
        self.reload_id = reload_id or uuid.uuid4().hex[:12]
        self.strategy = strategy
        self.start_time = time.time()
        self._reload_token = None
        self._strategy_token = None

    def __enter__(self):
        """进入上下文"""
        self.start_time = time.time()
        self._reload_token = current_reload_id.set(self.reload_id)
        if self.strategy:
            self._strategy_token = current_strategy.set(self.strategy)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """退出上下文"""
        if self._strategy_token is not None:
            current_strategy.reset(self._strategy_token)
            self._strategy_token = None
        if self._reload_token is not None:
            current_reload_id.reset(self._reload_token)
            self._reload_token = None

    @property
    def duration_ms(self) -> float:
        """获取耗时（毫秒）"""
        return (time.time() - self.start_time) * 1000


def setup_structured_logging(
    log_file: Optional[str] = None, log_level: str = "INFO", enable_console: bool = True
) -> logging.Logger:
    """
    设置结构化日志

    Args:
        log_file: JSON 行日志文件，为 None 时不写文件
        log_level: 日志级别
        enable_console: 是否同时输出控制台日志

    Returns:
        配置好的根日志器
    """
    # 创建根日志器
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # 清除现有处理器
    root_logger.handlers.clear()

    # 控制台处理器（人类可读格式）
    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)8s] [%(name)s] %(message)s", datefmt="%H:%M:%S")
        )
        root_logger.addHandler(console_handler)

    # 文件处理器（结构化JSON格式）
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    return root_logger
