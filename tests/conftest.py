"""
pytest配置文件，提供磁盘上的规则文件和绑定了文件引擎的管理器
"""
import sys
import textwrap
from datetime import timedelta
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from engine.manager import Manager
from engine.rule_engine import FileRuleEngine
from schemas.strategy import PartialResponseStrategy

EVAL_INTERVAL = timedelta(seconds=10)

# 标准规则文件集
RULE_FILES = {
    "no_strategy.yaml": """
        groups:
        - name: "something1"
          rules:
          - alert: "some"
            expr: "up"
    """,
    "abort.yaml": """
        groups:
        - name: "something2"
          partial_response_strategy: "abort"
          rules:
          - alert: "some"
            expr: "up"
    """,
    "warn.yaml": """
        groups:
        - name: "something3"
          partial_response_strategy: "warn"
          rules:
          - alert: "some"
            expr: "up"
    """,
    "wrong.yaml": """
        groups:
        - name: "something4"
          partial_response_strategy: "afafsdgsdgs" # invalid
          rules:
          - alert: "some"
            expr: "up"
    """,
    "combined.yaml": """
        groups:
        - name: "something5"
          partial_response_strategy: "warn"
          rules:
          - alert: "some"
            expr: "up"
        - name: "something6"
          partial_response_strategy: "abort"
          rules:
          - alert: "some"
            expr: "up"
        - name: "something7"
          rules:
          - alert: "some"
            expr: "up"
    """,
}


def write_rule_file(directory: Path, name: str, content: str) -> Path:
    """写入规则文件，去掉公共缩进"""
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
    return path


@pytest.fixture
def rules_dir(tmp_path):
    """包含标准规则文件集的目录"""
    directory = tmp_path / "rules"
    for name, content in RULE_FILES.items():
        write_rule_file(directory, name, content)
    return directory


@pytest.fixture
def engines():
    """每个策略一个文件引擎"""
    return {
        PartialResponseStrategy.ABORT: FileRuleEngine(name="abort"),
        PartialResponseStrategy.WARN: FileRuleEngine(name="warn"),
    }


@pytest.fixture
def manager(tmp_path, engines):
    """每个策略都绑定了文件引擎的管理器"""
    m = Manager(tmp_path / "data")
    for strategy, engine in engines.items():
        m.bind_engine(strategy, engine)
    return m
