"""
Ruler configuration and API payloads
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from schemas.rulefmt import parse_duration
from schemas.strategy import PartialResponseStrategy


class RulerConfig(BaseModel):
    """Runtime configuration of the rule manager service"""

    data_dir: str = Field(default="data", description="base directory, relative rule files resolve against it")
    work_dir: Optional[str] = Field(default=None, description="per-strategy rule copies, defaults inside data_dir")
    rule_files: List[str] = Field(default_factory=list, description="rule file paths or glob patterns")
    evaluation_interval: str = Field(default="1m", description="default group evaluation interval")
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None, description="JSON-lines log file")

    @field_validator("evaluation_interval")
    @classmethod
    def validate_evaluation_interval(cls, v: str) -> str:
        if parse_duration(v) <= timedelta(0):
            raise ValueError("evaluation_interval must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("rule_files", mode="before")
    @classmethod
    def split_rule_files(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @property
    def evaluation_timedelta(self) -> timedelta:
        return parse_duration(self.evaluation_interval)


class RuleGroupView(BaseModel):
    """A loaded rule group as served by the API"""

    name: str = Field(..., description="group name")
    file: str = Field(..., description="rule file the group was loaded from")
    partial_response_strategy: PartialResponseStrategy
    rules: List[Dict[str, Any]] = Field(default_factory=list)


class RuleGroupsData(BaseModel):
    groups: List[RuleGroupView] = Field(default_factory=list)


class RulesResponse(BaseModel):
    status: str = "success"
    data: RuleGroupsData


class ReloadResponse(BaseModel):
    status: str = "success"
    files: int = Field(0, description="rule files considered")
    groups: int = Field(0, description="rule groups loaded after the reload")
