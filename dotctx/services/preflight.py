"""Preflight generator: the warnings a task should see before any code changes."""

from pathlib import Path
from typing import List, Optional

from ..core.compiler import format_decision, format_landmine
from ..core.freshness import HOUR_MS, get_expired_loops, is_stale, parse_duration
from ..core.models import ContextSnapshot, PreflightChecklist
from ..core.relevance import (
    decision_text, extract_keywords, filter_relevant, landmine_text, loop_text, matches_keywords,
)
from ..core.tokenizer_service import TokenizerService
from ..utils.git import GitClient
from ..utils.markdown import extract_ripple_lines
from .audit import AuditEngine

NO_WARNINGS = 'No warnings. Proceed.'
FOOTER = 'Run `dotctx pull --task "..."` for full context capsule.'


class PreflightGenerator:
    """Builds a preflight checklist; strict keyword matching, no fallbacks."""

    def __init__(self,
                 git: Optional[GitClient] = None,
                 tokenizer_service: Optional[TokenizerService] = None):
        """
        Args:
            git: Version-control collaborator (branch and history checks)
            tokenizer_service: TokenizerService for the trailing token estimate
        """
        self.git = git
        self.tokenizer = tokenizer_service or TokenizerService()

    def _git_for(self, ctx_dir: Optional[Path]) -> GitClient:
        if self.git is not None:
            return self.git
        return GitClient(Path(ctx_dir).parent if ctx_dir else None)

    def generate(self, snapshot: ContextSnapshot, task: str,
                 brief: bool = False, ctx_dir: Optional[Path] = None) -> PreflightChecklist:
        """
        Generate a preflight checklist.

        Args:
            snapshot: Loaded context snapshot
            task: Task description used for keyword relevance
            brief: Render only health warnings and landmines
            ctx_dir: Store directory; enables stale-file warnings

        Returns:
            PreflightChecklist with matches and formatted text
        """
        keywords = extract_keywords(task)
        git = self._git_for(ctx_dir)

        landmines = filter_relevant(snapshot.landmines, landmine_text, keywords)
        decisions = filter_relevant(snapshot.decisions, decision_text, keywords)
        open_loops = filter_relevant(snapshot.active_loops, loop_text, keywords)
        ripple_map = self.match_ripple_map(snapshot, keywords)
        health = self.health_warnings(snapshot, git, ctx_dir)

        sections: List[List[str]] = []
        if health:
            sections.append(['## Context Health'] + health)
        if landmines:
            ordered = sorted(landmines, key=lambda landmine: landmine.severity_rank)
            sections.append(
                ['## Landmines', '> These look wrong but are intentional — DO NOT change']
                + [f'  - {landmine.severity_tag}{format_landmine(landmine)}' for landmine in ordered]
            )
        if not brief:
            if decisions:
                sections.append(
                    ['## Constraining Decisions']
                    + [f'  - {format_decision(decision, rejected_label="rejected")}' for decision in decisions]
                )
            if ripple_map:
                sections.append(['## Ripple Map', '> Changes here may affect:'] + [f'  - {line}' for line in ripple_map])
            if open_loops:
                sections.append(
                    ['## Related Open Loops']
                    + [f'  - {loop.description}' + (f' ({loop.context})' if loop.context else '') for loop in open_loops]
                )

        header = f'# Preflight Checklist: {task}'
        if not sections:
            formatted = f'{header}\n\n{NO_WARNINGS}'
        else:
            lines = [header, '']
            for section in sections:
                lines += section + ['']
            lines += ['---', FOOTER]
            body = '\n'.join(lines)
            formatted = f'{body}\n(~{self.tokenizer.count_tokens(body)} tokens)'

        return PreflightChecklist(
            landmines=landmines,
            decisions=decisions,
            ripple_map=ripple_map,
            open_loops=open_loops,
            formatted=formatted,
        )

    def match_ripple_map(self, snapshot: ContextSnapshot, keywords: List[str]) -> List[str]:
        """Ripple-map lines and touched files matching the task keywords."""
        ripple = [line for line in extract_ripple_lines(snapshot.architecture) if matches_keywords(line, keywords)]
        if snapshot.current:
            for file in snapshot.current.files_touched:
                if matches_keywords(file, keywords) and file not in ripple:
                    ripple.append(file)
        return ripple

    def health_warnings(self, snapshot: ContextSnapshot, git: GitClient,
                        ctx_dir: Optional[Path] = None) -> List[str]:
        """Keyword-independent warnings about the store itself."""
        freshness = snapshot.config.freshness
        warnings = []
        current = snapshot.current

        if current and current.updated_at:
            threshold_hours = parse_duration(freshness.stale_threshold) / HOUR_MS
            if is_stale(current.updated_at, threshold_hours):
                warnings.append(
                    f'⚠ current.yaml is stale (last updated {current.updated_at}) — confirm the task is still accurate'
                )

        expired = get_expired_loops(snapshot.open_loops, freshness.loop_default_ttl)
        if expired:
            plural = 's' if len(expired) > 1 else ''
            warnings.append(f'⚠ {len(expired)} open loop{plural} expired — review .ctx/open-loops.yaml')

        if current and current.branch and git.is_repo():
            branch = git.current_branch()
            if branch and branch != current.branch:
                warnings.append(f'⚠ Branch mismatch: current.yaml says `{current.branch}`, you are on `{branch}`')

        if ctx_dir:
            warnings += AuditEngine(git=git).stale_file_warnings(ctx_dir, freshness.file_stale_threshold)

        return warnings


def generate_preflight(snapshot: ContextSnapshot, task: str, brief: bool = False,
                       ctx_dir: Optional[Path] = None, git: Optional[GitClient] = None) -> PreflightChecklist:
    """Generate a preflight checklist with the default collaborators."""
    return PreflightGenerator(git=git).generate(snapshot, task, brief=brief, ctx_dir=ctx_dir)
