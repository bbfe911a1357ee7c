"""Rule engines and the manager that routes rule files to them."""

from engine.manager import Manager
from engine.rule_engine import EngineGroup, FileRuleEngine, RuleEngine

__all__ = ["EngineGroup", "FileRuleEngine", "Manager", "RuleEngine"]
