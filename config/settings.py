"""
配置加载器
支持从 YAML 文件和环境变量加载规则管理器配置
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from schemas.ruler import RulerConfig


class Settings:
    """配置管理器"""

    env_mappings = {
        # 规则配置
        "RULER_DATA_DIR": ("ruler", "data_dir"),
        "RULER_WORK_DIR": ("ruler", "work_dir"),
        "RULER_RULE_FILES": ("ruler", "rule_files"),
        "RULER_EVAL_INTERVAL": ("ruler", "evaluation_interval"),
        # 日志配置
        "LOG_LEVEL": ("logging", "level"),
        "LOG_FILE": ("logging", "file"),
    }

    # 保持原始字符串，不做类型转换
    string_keys = {"data_dir", "work_dir", "rule_files", "evaluation_interval", "file"}

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or os.getenv("RULER_CONFIG") or self._get_default_config_path()
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _get_default_config_path(self) -> str:
        """获取默认配置文件路径"""
        current_dir = Path(__file__).parent
        return str(current_dir / "ruler.yaml")

    def _load_config(self):
        """加载配置"""
        # 1. 加载YAML配置
        if os.path.exists(self.config_path):
            with open(self.config_path, "r", encoding="utf-8") as f:
                self._config = yaml.safe_load(f) or {}

        # 2. 环境变量覆盖
        self._load_env_overrides()

    def _load_env_overrides(self):
        """加载环境变量覆盖"""
        for env_key, (section, key) in self.env_mappings.items():
            env_value = os.getenv(env_key)
            if env_value is not None:
                if not isinstance(self._config.get(section), dict):
                    self._config[section] = {}

                if key in self.string_keys:
                    self._config[section][key] = env_value
                else:
                    self._config[section][key] = self._convert_env_value(env_value)

    def _convert_env_value(self, value: str) -> Any:
        """转换环境变量值"""
        # 布尔值
        if value.lower() in ("true", "false"):
            return value.lower() == "true"

        # 数字
        try:
            if "." in value:
                return float(value)
            else:
                return int(value)
        except ValueError:
            pass

        return value

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """获取单个配置项"""
        return self.get_section(section).get(key, default)

    def get_section(self, section: str) -> Dict[str, Any]:
        """获取配置段"""
        value = self._config.get(section)
        return value if isinstance(value, dict) else {}

    def get_logging_config(self) -> Dict[str, Any]:
        """获取日志配置"""
        return self.get_section("logging")

    def to_ruler_config(self) -> RulerConfig:
        """
        转换为规则管理器运行配置

        相对的 data_dir 以配置文件所在目录为基准，与启动目录无关。
        """
        ruler = dict(self.get_section("ruler"))
        logging_config = self.get_logging_config()

        data_dir = self.get("ruler", "data_dir", "data")
        if not os.path.isabs(data_dir):
            data_dir = str(Path(self.config_path).resolve().parent / data_dir)
        ruler["data_dir"] = data_dir

        if logging_config.get("level") is not None:
            ruler["log_level"] = logging_config["level"]
        if logging_config.get("file") is not None:
            ruler["log_file"] = logging_config["file"]

        return RulerConfig(**ruler)


# 全局配置实例
_settings = None


def get_settings() -> Settings:
    """获取全局配置实例"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
