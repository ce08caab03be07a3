"""Per-file lookups: landmine/ripple warnings for a path and everything the store says about it."""

import os
from typing import List, Optional

from ..core.compiler import format_landmine
from ..core.models import ContextSnapshot
from ..utils.markdown import extract_backtick_paths, extract_ripple_lines


def normalize_path(file_path: str, root: Optional[str] = None) -> str:
    """Strip a leading './'; make absolute paths relative to root (default: cwd)."""
    normalized = file_path[2:] if file_path.startswith('./') else file_path
    if os.path.isabs(normalized):
        normalized = os.path.relpath(normalized, root or os.getcwd())
    return normalized


def _overlaps(a: str, b: str) -> bool:
    return a == b or a in b or b in a


def check_file(snapshot: ContextSnapshot, file_path: str, landmines_only: bool = False,
               ripple_only: bool = False, root: Optional[str] = None) -> List[str]:
    """
    Warnings for a file about to be edited.

    Returns one line per landmine whose path overlaps the file and one per
    ripple-map line whose first backtick path overlaps it.
    """
    normalized = normalize_path(file_path, root)
    lines = []

    if not ripple_only:
        for landmine in snapshot.landmines:
            landmine_path = normalize_path(landmine.path) if landmine.path else ''
            if landmine_path and _overlaps(normalized, landmine_path):
                lines.append(f"⚠️ LANDMINE: {format_landmine(landmine)}")

    if not landmines_only:
        for line in extract_ripple_lines(snapshot.architecture):
            paths = extract_backtick_paths(line)
            source = normalize_path(paths[0]) if paths else ''
            if source and _overlaps(normalized, source):
                lines.append(f"📍 RIPPLE: {line.lstrip('-* ').strip()}")

    return lines


def explain_file(snapshot: ContextSnapshot, file_path: str) -> Optional[str]:
    """Landmines, decisions, ripple entries and conventions mentioning a file; None if nothing does."""
    needle = file_path.lower()
    sections = []

    landmines = [
        landmine for landmine in snapshot.landmines
        if needle in landmine.file.lower() or needle in landmine.description.lower()
    ]
    if landmines:
        entries = []
        for landmine in landmines:
            entry = f"  {landmine.severity_tag}{landmine.description}" + (f" ({landmine.file})" if landmine.file else '')
            if landmine.why:
                entry += f"\n    → {landmine.why}"
            entries.append(entry)
        sections.append('## Landmines\n' + '\n'.join(entries))

    decisions = [
        d for d in snapshot.decisions
        if needle in d.decision.lower() or needle in d.why.lower() or needle in d.rejected.lower()
    ]
    if decisions:
        entries = [
            f"  {d.decision}" + (f" (over: {d.rejected})" if d.rejected else '') + f"\n    → {d.why}"
            for d in decisions
        ]
        sections.append('## Decisions\n' + '\n'.join(entries))

    ripple = [f"  {line}" for line in extract_ripple_lines(snapshot.architecture) if needle in line.lower()]
    if ripple:
        sections.append('## Ripple Map\n' + '\n'.join(ripple))

    conventions = [
        f"  {line.strip()}" for line in snapshot.conventions.split('\n')
        if line.strip() and needle in line.lower() and not line.startswith('#')
    ]
    if conventions:
        sections.append('## Conventions\n' + '\n'.join(conventions))

    if not sections:
        return None
    return f"Why: {file_path}\n\n" + '\n\n'.join(sections)
