"""
Gitignore-style exclusion rules for the input tree.
"""
import os
import logging
from pathlib import PurePath
from typing import Iterable, List, Tuple

import pathspec

logger = logging.getLogger(__name__)

IGNORE_FILE = ".iconpipe-ignore"


def load_ignore_rules(path: str = IGNORE_FILE) -> pathspec.GitIgnoreSpec:
    """
    Load patterns from `path`. A missing file means nothing is ignored.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            lines = f.read().splitlines()
    except FileNotFoundError:
        logger.debug(f"No ignore file at {path}, nothing will be ignored")
        lines = []
    return pathspec.GitIgnoreSpec.from_lines(lines)


def posix_relative(path: str, root: str) -> str:
    """Path of `path` relative to `root`, always with forward slashes."""
    return PurePath(os.path.relpath(path, root)).as_posix()


def filter_ignored(files: Iterable[str], root: str, rules: pathspec.PathSpec) -> Tuple[List[str], List[str]]:
    """
    Split `files` into (kept, ignored) by matching each path relative to `root`.
    """
    kept, ignored = [], []
    for file in files:
        if rules.match_file(posix_relative(file, root)):
            ignored.append(file)
        else:
            kept.append(file)
    return kept, ignored
