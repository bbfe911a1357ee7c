"""
Rule file loader
Reads rule files from disk and expands rule file patterns
"""

import glob
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

import yaml

from rules.errors import RuleFileIOError, RuleFileParseError, RuleGroupDecodeError
from rules.rule_group import RuleGroups

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def load_file(path: PathLike) -> RuleGroups:
    """
    Load every rule group of one file.

    Args:
        path: rule file path, made absolute before use

    Returns:
        groups in file order, each tagged with the absolute path

    Raises:
        RuleFileIOError: file cannot be read
        RuleFileParseError: content is not UTF-8 or cannot be decoded into rule groups
    """
    abs_path = os.path.abspath(os.fspath(path))

    try:
        with open(abs_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise RuleFileIOError(abs_path, e) from e
    except UnicodeDecodeError as e:
        raise RuleFileParseError(abs_path, e) from e

    try:
        groups = RuleGroups.from_yaml(content, original_file=abs_path)
    except (yaml.YAMLError, RuleGroupDecodeError) as e:
        raise RuleFileParseError(abs_path, e) from e

    logger.debug(f"Loaded {len(groups)} rule groups from {abs_path}")
    return groups


def expand_rule_files(patterns: Iterable[PathLike], base_dir: Optional[PathLike] = None) -> List[str]:
    """
    Expand rule file patterns into absolute paths.

    Glob patterns expand to their sorted matches. Plain paths are kept even
    when missing so that loading reports them. The first occurrence of a path
    wins.
    """
    base = Path(base_dir) if base_dir is not None else Path.cwd()
    files: List[str] = []
    seen = set()

    for pattern in patterns:
        pattern = os.fspath(pattern)
        if not os.path.isabs(pattern):
            pattern = os.path.join(base, pattern)

        if glob.has_magic(pattern):
            matches = sorted(glob.glob(pattern))
            if not matches:
                logger.warning(f"Rule file pattern matched no files: {pattern}")
        else:
            matches = [pattern]

        for match in matches:
            abs_path = os.path.abspath(match)
            if abs_path not in seen:
                seen.add(abs_path)
                files.append(abs_path)

    return files
