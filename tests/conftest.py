"""Shared fixtures for dotctx tests."""

from datetime import datetime
from pathlib import Path
from textwrap import dedent
from typing import Dict, Optional

import pytest


class FakeGit:
    """In-memory stand-in for GitClient."""

    def __init__(self, repo: bool = True, branch: str = 'main', root: str = '',
                 last_modified: Optional[Dict[str, datetime]] = None,
                 commits: Optional[Dict[str, int]] = None):
        self.repo = repo
        self.branch = branch
        self._root = root
        self.last_modified = last_modified or {}
        self.commits = commits or {}

    def is_repo(self) -> bool:
        return self.repo

    def current_branch(self) -> str:
        return self.branch if self.repo else ''

    def root(self) -> str:
        return self._root

    def file_last_modified(self, file_path) -> Optional[datetime]:
        return self.last_modified.get(Path(file_path).name)

    def commit_count_after(self, file_path, since: str) -> int:
        return self.commits.get(Path(file_path).name, 0)


@pytest.fixture
def fake_git():
    return FakeGit


@pytest.fixture
def ctx_store(tmp_path):
    """Write a .ctx store under tmp_path from {relative_path: text} and return its path."""
    def write(files: Dict[str, str]) -> Path:
        ctx_dir = tmp_path / '.ctx'
        ctx_dir.mkdir(exist_ok=True)
        for name, content in files.items():
            path = ctx_dir / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(dedent(content).lstrip('\n'), encoding='utf-8')
        return ctx_dir
    return write
