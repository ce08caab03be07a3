"""Audit engine: stale store files, drifted entries and ripple-map coverage gaps."""

import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..config.settings import CtxConfig
from ..core.freshness import DAY_MS, parse_duration, utc_now
from ..core.models import ContextSnapshot
from ..utils.git import GitClient
from ..utils.markdown import extract_ripple_paths
from .file_lookup import normalize_path

logger = logging.getLogger(__name__)

CTX_FILES = [
    'architecture.md',
    'conventions.md',
    'decisions.md',
    'landmines.md',
    'vocabulary.md',
    'current.yaml',
    'stack.yaml',
    'open-loops.yaml',
]

CORE_SOURCE_DIRS = ['src/core', 'src/utils']
SOURCE_SUFFIXES = ('.py', '.ts', '.js')
TEST_FILE_PATTERN = re.compile(r'(^test_.*\.py$|_test\.py$|\.(test|spec)\.(ts|js)$)')
DECISION_FILE_PATTERN = re.compile(r'`([^`]+\.[a-z]+)`')

DEFAULT_FILE_STALE_THRESHOLD = '30d'
REASON_MISSING = 'Referenced in ripple map but file no longer exists'
REASON_UNTRACKED = 'Source file not tracked in ripple map'
REFRESH_HINT = 'run `/ctx-refresh` to review'


@dataclass
class FileStaleEntry:
    """History-based age of one store file."""
    file: str
    last_modified: Optional[datetime]
    days_ago: int
    is_stale: bool


@dataclass
class EntryDrift:
    """A landmine or decision whose referenced file changed after it was written."""
    type: str
    description: str
    referenced_file: str
    entry_date: str
    commits_since_entry: int


@dataclass
class RippleCoverageGap:
    """A ripple-map path that is missing, or a source file the ripple map does not track."""
    file: str
    reason: str


@dataclass
class AuditResult:
    """Outcome of all three audit phases."""
    file_stale: List[FileStaleEntry]
    entry_drift: List[EntryDrift]
    ripple_gaps: List[RippleCoverageGap]
    summary: str
    formatted: str

    @property
    def stale_files(self) -> List[FileStaleEntry]:
        return [entry for entry in self.file_stale if entry.is_stale]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for entry in data['file_stale']:
            if entry['last_modified'] is not None:
                entry['last_modified'] = entry['last_modified'].isoformat()
        return data


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


class AuditEngine:
    """Compares a snapshot against repository history and the working tree."""

    def __init__(self, git: Optional[GitClient] = None):
        """
        Args:
            git: Version-control collaborator; defaults to git in the project directory
        """
        self.git = git

    def _git_for(self, project_dir: Path) -> GitClient:
        return self.git if self.git is not None else GitClient(project_dir)

    def file_staleness(self, ctx_dir: Path, threshold_ms: int,
                       now: Optional[datetime] = None) -> List[FileStaleEntry]:
        """Age of every well-known store file present on disk."""
        ctx_dir = Path(ctx_dir)
        git = self._git_for(ctx_dir.parent)
        now = now or utc_now()
        entries = []

        for file in CTX_FILES:
            file_path = ctx_dir / file
            if not file_path.exists():
                continue

            last_modified = git.file_last_modified(file_path)
            if last_modified is None:
                # Without history staleness cannot be proven
                entries.append(FileStaleEntry(file, None, -1, False))
                continue

            age_ms = (now - last_modified).total_seconds() * 1000
            entries.append(FileStaleEntry(
                file=file,
                last_modified=last_modified,
                days_ago=int(age_ms // DAY_MS),
                is_stale=age_ms > threshold_ms,
            ))

        return entries

    def entry_drift(self, snapshot: ContextSnapshot, ctx_dir: Path) -> List[EntryDrift]:
        """Landmines and decisions whose referenced file has commits after the entry date."""
        project_dir = Path(ctx_dir).parent
        git = self._git_for(project_dir)
        drift = []

        for landmine in snapshot.landmines:
            if not landmine.file or not landmine.date:
                continue
            file_path = landmine.path
            full_path = project_dir / file_path
            if not full_path.exists():
                continue
            commits = git.commit_count_after(full_path, landmine.date)
            if commits > 0:
                drift.append(EntryDrift('landmine', landmine.description, file_path, landmine.date, commits))

        for decision in snapshot.decisions:
            if not decision.date:
                continue
            # Best effort: only backtick-quoted file names in the decision text are seen
            match = DECISION_FILE_PATTERN.search(decision.decision)
            if not match:
                continue
            file_path = match.group(1)
            full_path = project_dir / file_path
            if not full_path.exists():
                continue
            commits = git.commit_count_after(full_path, decision.date)
            if commits > 0:
                drift.append(EntryDrift('decision', decision.decision, file_path, decision.date, commits))

        return drift

    def ripple_coverage_gaps(self, snapshot: ContextSnapshot, ctx_dir: Path,
                             core_dirs: Sequence[str] = CORE_SOURCE_DIRS) -> List[RippleCoverageGap]:
        """Missing ripple-map paths and untracked core source files."""
        project_dir = Path(ctx_dir).parent
        ripple_paths = list(dict.fromkeys(
            normalize_path(path, str(project_dir)) for path in extract_ripple_paths(snapshot.architecture)
        ))
        gaps = []

        for path in ripple_paths:
            if '*' in path or '{' in path:
                continue
            if not (project_dir / path).exists():
                gaps.append(RippleCoverageGap(path, REASON_MISSING))

        tracked = set(ripple_paths)
        for directory in core_dirs:
            full_dir = project_dir / directory
            if not full_dir.is_dir():
                continue
            try:
                names = sorted(p.name for p in full_dir.iterdir() if p.is_file())
            except OSError as e:
                logger.debug("Skipping unreadable %s: %s", full_dir, e)
                continue
            for name in names:
                if not name.endswith(SOURCE_SUFFIXES) or TEST_FILE_PATTERN.search(name):
                    continue
                rel_path = f"{directory}/{name}"
                if rel_path not in tracked:
                    gaps.append(RippleCoverageGap(rel_path, REASON_UNTRACKED))

        return gaps

    def stale_file_warnings(self, ctx_dir: Path, threshold_duration: Optional[str] = None) -> List[str]:
        """One-line warning listing stale store files; empty without history."""
        git = self._git_for(Path(ctx_dir).parent)
        if not git.is_repo():
            return []

        threshold_ms = parse_duration(threshold_duration or DEFAULT_FILE_STALE_THRESHOLD)
        stale = [e for e in self.file_staleness(ctx_dir, threshold_ms) if e.is_stale]
        if not stale:
            return []

        file_list = ', '.join(f"{e.file} ({e.days_ago}d)" for e in stale)
        return [f"📋 {_plural(len(stale), 'stale .ctx/ file', 'stale .ctx/ files')}: {file_list} — {REFRESH_HINT}"]

    def health_section(self, ctx_dir: Path, config: CtxConfig) -> str:
        """Markdown health section for compiled outputs; '' when nothing is stale."""
        warnings = self.stale_file_warnings(ctx_dir, config.freshness.file_stale_threshold)
        if not warnings:
            return ''
        return '## Context Health\n' + '\n'.join(w.replace('📋', '⚠', 1) for w in warnings)

    def run(self, snapshot: ContextSnapshot, ctx_dir: Path) -> AuditResult:
        """
        Run all three audit phases.

        Args:
            snapshot: Loaded context snapshot
            ctx_dir: Store directory (its parent is the project root)

        Returns:
            AuditResult with per-phase findings, summary and formatted report
        """
        ctx_dir = Path(ctx_dir)
        git = self._git_for(ctx_dir.parent)
        threshold_ms = parse_duration(snapshot.config.freshness.file_stale_threshold or DEFAULT_FILE_STALE_THRESHOLD)

        has_history = git.is_repo()
        if not has_history:
            logger.info("No git history at %s; skipping staleness and drift", ctx_dir.parent)

        file_stale = self.file_staleness(ctx_dir, threshold_ms) if has_history else []
        entry_drift = self.entry_drift(snapshot, ctx_dir) if has_history else []
        ripple_gaps = self.ripple_coverage_gaps(snapshot, ctx_dir)

        stale_count = sum(1 for e in file_stale if e.is_stale)
        parts = []
        if stale_count:
            parts.append(_plural(stale_count, 'stale file', 'stale files'))
        if entry_drift:
            parts.append(_plural(len(entry_drift), 'drifted entry', 'drifted entries'))
        if ripple_gaps:
            parts.append(_plural(len(ripple_gaps), 'ripple gap', 'ripple gaps'))

        if parts:
            summary = (f"Found: {', '.join(parts)}. "
                       "Run `/ctx-refresh` or `dotctx compile --target all` after fixing.")
        else:
            summary = '✓ All context files are fresh. No drift or coverage gaps detected.'

        return AuditResult(
            file_stale=file_stale,
            entry_drift=entry_drift,
            ripple_gaps=ripple_gaps,
            summary=summary,
            formatted=format_audit(file_stale, entry_drift, ripple_gaps, summary),
        )


def format_audit(file_stale: List[FileStaleEntry], entry_drift: List[EntryDrift],
                 ripple_gaps: List[RippleCoverageGap], summary: str) -> str:
    """Multi-section report mirroring the three audit phases."""
    lines = ['# Context Audit', '', '## File Freshness', '']

    for entry in file_stale:
        if entry.is_stale:
            lines.append(f"  ⚠ {entry.file} — {entry.days_ago}d ago (stale)")
    for entry in file_stale:
        if not entry.is_stale:
            age = f"{entry.days_ago}d ago" if entry.days_ago >= 0 else 'no git history'
            lines.append(f"  ✓ {entry.file} — {age}")
    lines.append('')

    if entry_drift:
        lines += ['## Entry Drift', '']
        for d in entry_drift:
            times = _plural(d.commits_since_entry, 'time', 'times')
            lines.append(f'  ⚠ {d.type}: "{d.description}" — {d.referenced_file} changed {times} since {d.entry_date}')
        lines.append('')

    if ripple_gaps:
        missing = [g for g in ripple_gaps if g.reason == REASON_MISSING]
        untracked = [g for g in ripple_gaps if g.reason == REASON_UNTRACKED]
        lines += ['## Ripple Map Coverage', '']
        if missing:
            lines.append('  Missing files (referenced but deleted):')
            lines += [f"    ✗ {g.file}" for g in missing]
        if untracked:
            lines.append('  Untracked files (in core dirs, not in ripple map):')
            lines += [f"    ? {g.file}" for g in untracked]
        lines.append('')

    lines += ['---', summary]
    return '\n'.join(lines)


def run_audit(snapshot: ContextSnapshot, ctx_dir: Path, git: Optional[GitClient] = None) -> AuditResult:
    """Run the full audit with the default collaborators."""
    return AuditEngine(git=git).run(snapshot, ctx_dir)


def get_stale_file_warnings(ctx_dir: Path, threshold_duration: Optional[str] = None,
                            git: Optional[GitClient] = None) -> List[str]:
    return AuditEngine(git=git).stale_file_warnings(ctx_dir, threshold_duration)


def get_health_section(ctx_dir: Path, config: CtxConfig, git: Optional[GitClient] = None) -> str:
    return AuditEngine(git=git).health_section(ctx_dir, config)
