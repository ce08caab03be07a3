"""Capsule generator: a task-scoped, keyword-filtered view of the context store."""

from datetime import datetime, timezone
from typing import List, Optional

from ..core.compiler import format_decision, format_landmine
from ..core.models import Capsule, ContextSnapshot
from ..core.relevance import (
    decision_text, extract_keywords, filter_relevant, landmine_text, loop_text,
    matches_keywords, vocab_text,
)
from ..core.tokenizer_service import TokenizerService

RESUME_BUDGET = 50
DECISION_FALLBACK_LIMIT = 10
CONVENTION_MIN_LINES = 3
LANDMINE_BANNER = '> Things that look wrong but are intentional — DO NOT change'


class CapsuleGenerator:
    """Renders a capsule for one task within a token budget."""

    def __init__(self, tokenizer_service: Optional[TokenizerService] = None):
        self.tokenizer = tokenizer_service or TokenizerService()

    def generate(self, snapshot: ContextSnapshot, task: str, budget: int,
                 generated_on: Optional[str] = None) -> Capsule:
        """
        Generate a capsule for a task.

        Args:
            snapshot: Loaded context snapshot
            task: Task description used for keyword relevance
            budget: Token budget for the whole document
            generated_on: Date stamp for the header (defaults to today, UTC)

        Returns:
            Capsule with markdown, resume line and token count
        """
        keywords = extract_keywords(task)
        generated_on = generated_on or datetime.now(timezone.utc).date().isoformat()

        lines = [
            '# Context Capsule',
            f'Task: {task}',
            f'Generated: {generated_on}',
            '',
        ]
        lines += self._current_state(snapshot)
        lines += self._landmines(snapshot, keywords)
        lines += self._decisions(snapshot, keywords)
        lines += self._conventions(snapshot, keywords)
        lines += self._open_loops(snapshot, keywords)
        lines += self._vocabulary(snapshot, keywords)
        lines += self._last_session(snapshot)
        lines += self._stack(snapshot)

        markdown = '\n'.join(lines)
        if self.tokenizer.count_tokens(markdown) > budget:
            markdown = self.tokenizer.fit_to_budget(markdown, budget).text

        return Capsule(
            markdown=markdown,
            resume=self.build_resume(snapshot),
            tokens=self.tokenizer.count_tokens(markdown),
        )

    def build_resume(self, snapshot: ContextSnapshot) -> str:
        """One-paragraph restart cue of roughly fifty tokens."""
        parts = []
        current = snapshot.current
        if current and current.task:
            parts.append(f'Working on: {current.task}.')
        if current and current.state:
            parts.append(f'State: {current.state}.')
        if current and current.next_step:
            parts.append(f'Next: {current.next_step}.')
        if snapshot.landmines:
            parts.append(f'{len(snapshot.landmines)} landmine(s) — check .ctx/landmines.md.')
        if snapshot.latest_session:
            parts.append(f'Last session: {snapshot.latest_session.summary}')
        return self.tokenizer.fit_to_budget(' '.join(parts), RESUME_BUDGET).text

    def _current_state(self, snapshot: ContextSnapshot) -> List[str]:
        if not snapshot.has_task:
            return []
        current = snapshot.current
        lines = [
            '## Current State [A]',
            f'- Branch: {current.branch}',
            f'- Task: {current.task}',
            f'- State: {current.state}',
        ]
        if current.next_step:
            lines.append(f'- Next: {current.next_step}')
        if current.blocked_by:
            lines.append(f'- Blocked by: {current.blocked_by}')
        return lines + ['']

    def _landmines(self, snapshot: ContextSnapshot, keywords: List[str]) -> List[str]:
        # A keyword miss must never hide landmines: fall back to all of them
        landmines = filter_relevant(snapshot.landmines, landmine_text, keywords) or snapshot.landmines
        if not landmines:
            return []
        lines = ['## Landmines [A]', LANDMINE_BANNER]
        for landmine in landmines:
            lines.append(f'- {_bold_head(format_landmine(landmine), landmine.description)}')
        return lines + ['']

    def _decisions(self, snapshot: ContextSnapshot, keywords: List[str]) -> List[str]:
        decisions = (filter_relevant(snapshot.decisions, decision_text, keywords)
                     or snapshot.decisions[:DECISION_FALLBACK_LIMIT])
        if not decisions:
            return []
        lines = ['## Decisions [A]']
        for decision in decisions:
            lines.append(f'- {_bold_head(format_decision(decision), decision.decision)}')
        return lines + ['']

    def _conventions(self, snapshot: ContextSnapshot, keywords: List[str]) -> List[str]:
        if not snapshot.conventions:
            return []
        # Headings and blank lines are kept as structure around matching lines
        relevant = [
            line for line in snapshot.conventions.split('\n')
            if line.startswith('#') or matches_keywords(line, keywords) or line.strip() == ''
        ]
        body = '\n'.join(relevant) if len(relevant) > CONVENTION_MIN_LINES else snapshot.conventions
        return ['## Conventions [A]', body, '']

    def _open_loops(self, snapshot: ContextSnapshot, keywords: List[str]) -> List[str]:
        loops = filter_relevant(snapshot.active_loops, loop_text, keywords)
        if not loops:
            return []
        lines = ['## Open Loops [A]']
        for loop in loops:
            lines.append(f'- {loop.description}' + (f' — {loop.context}' if loop.context else ''))
        return lines + ['']

    def _vocabulary(self, snapshot: ContextSnapshot, keywords: List[str]) -> List[str]:
        entries = filter_relevant(snapshot.vocabulary, vocab_text, keywords)
        if not entries:
            return []
        return ['## Vocabulary [A]'] + [f'- **{v.term}**: {v.definition}' for v in entries] + ['']

    def _last_session(self, snapshot: ContextSnapshot) -> List[str]:
        recent = snapshot.latest_session
        if recent is None:
            return []
        lines = ['## Last Session [D]', f'- {recent.date}: {recent.summary}']
        if recent.next_step:
            lines.append(f'- Next: {recent.next_step}')
        return lines + ['']

    def _stack(self, snapshot: ContextSnapshot) -> List[str]:
        stack = snapshot.stack
        if not stack or not stack.name:
            return []
        lines = ['## Stack [A]']
        if stack.language:
            lines.append(f"- Language: {', '.join(stack.language)}")
        if stack.framework:
            lines.append(f"- Framework: {', '.join(stack.framework)}")
        if stack.build:
            lines.append(f"- Build: {', '.join(stack.build)}")
        return lines + ['']


def _bold_head(line: str, head: str) -> str:
    """Bold the leading entry text of a formatted line."""
    return f'**{head}**{line[len(head):]}'


def generate_capsule(snapshot: ContextSnapshot, task: str, budget: int) -> Capsule:
    """Generate a capsule with the default tokenizer."""
    return CapsuleGenerator().generate(snapshot, task, budget)
