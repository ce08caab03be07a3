"""Markdown helpers: pipe tables and the ripple map embedded in architecture.md."""

import re
from typing import Iterator, List
from pathlib import Path

BACKTICK_PATTERN = re.compile(r'`([^`]+)`')
RIPPLE_MARKER = 'ripple map'


def read_markdown(file_path) -> str:
    """Read a markdown file; missing or unreadable files read as ''."""
    try:
        return Path(file_path).read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError):
        return ''


def iter_table_rows(content: str, header_word: str) -> Iterator[List[str]]:
    """
    Yield the cells of each data row in the pipe tables of a document.

    Header rows (containing `header_word`) and separator rows are skipped;
    empty cells are dropped.
    """
    for line in content.split('\n'):
        if not line.startswith('|') or '---' in line or header_word in line.lower():
            continue
        cells = [cell.strip() for cell in line.split('|')]
        yield [cell for cell in cells if cell]


def extract_ripple_lines(architecture: str) -> List[str]:
    """
    Lines of the ripple map region of an architecture document.

    The region starts after the first line mentioning "ripple map" and ends
    at the next heading. Lines are trimmed; blank lines are skipped.
    """
    lines = []
    in_ripple = False

    for line in (architecture or '').split('\n'):
        if RIPPLE_MARKER in line.lower():
            in_ripple = True
            continue
        if in_ripple and line.startswith('#'):
            in_ripple = False
            continue
        if in_ripple and line.strip():
            lines.append(line.strip())

    return lines


def extract_backtick_paths(line: str) -> List[str]:
    """Backtick-quoted tokens in a line, in order."""
    return BACKTICK_PATTERN.findall(line)


def extract_ripple_paths(architecture: str) -> List[str]:
    """Unique backtick-quoted paths of the ripple map, in first-seen order."""
    paths: List[str] = []
    for line in extract_ripple_lines(architecture):
        for path in extract_backtick_paths(line):
            if path not in paths:
                paths.append(path)
    return paths
