"""Compiler that fits a context snapshot into a token budget by section priority."""

from typing import List, NamedTuple, Optional

from .budget_manager import BudgetManager
from .models import CompiledContext, CompiledSection, ContextSnapshot
from .priority import SectionName, sort_by_priority
from .tokenizer_service import TokenizerService


class SectionInput(NamedTuple):
    """A candidate section before allocation."""
    name: str
    content: str


def format_landmine(landmine) -> str:
    line = landmine.description
    if landmine.file:
        line += f" ({landmine.file})"
    if landmine.why:
        line += f" — {landmine.why}"
    return line


def format_decision(decision, rejected_label: str = "over") -> str:
    line = decision.decision
    if decision.rejected:
        line += f" ({rejected_label}: {decision.rejected})"
    return f"{line} — {decision.why}"


class ContextCompiler:
    """Builds named sections from a snapshot and allocates the budget across them."""

    def __init__(self,
                 tokenizer_service: Optional[TokenizerService] = None,
                 budget_manager: Optional[BudgetManager] = None):
        """
        Initialize the compiler.

        Args:
            tokenizer_service: TokenizerService instance for token counting
            budget_manager: BudgetManager holding the per-rank cap policy
        """
        self.tokenizer = tokenizer_service or TokenizerService()
        self.budget_manager = budget_manager or BudgetManager()

    def build_sections(self, snapshot: ContextSnapshot) -> List[SectionInput]:
        """Render every non-empty section of the snapshot, in declaration order."""
        sections = []

        if snapshot.has_task:
            current = snapshot.current
            lines = [
                f"Branch: {current.branch}",
                f"Task: {current.task}",
                f"State: {current.state}",
                f"Next: {current.next_step}" if current.next_step else '',
                f"Blocked by: {current.blocked_by}" if current.blocked_by else '',
                f"Files: {', '.join(current.files_touched)}" if current.files_touched else '',
            ]
            sections.append(SectionInput(SectionName.CURRENT.value, '\n'.join(line for line in lines if line)))

        if snapshot.landmines:
            content = '\n'.join(f"- {format_landmine(landmine)}" for landmine in snapshot.landmines)
            sections.append(SectionInput(SectionName.LANDMINES.value, content))

        if snapshot.decisions:
            content = '\n'.join(f"- {format_decision(decision)}" for decision in snapshot.decisions)
            sections.append(SectionInput(SectionName.DECISIONS.value, content))

        # Architecture carries the embedded ripple map
        if snapshot.architecture:
            sections.append(SectionInput(SectionName.ARCHITECTURE.value, snapshot.architecture))

        open_loops = snapshot.active_loops
        if open_loops:
            content = '\n'.join(
                f"- {loop.description}" + (f" ({loop.context})" if loop.context else '') for loop in open_loops
            )
            sections.append(SectionInput(SectionName.OPEN_LOOPS.value, content))

        if snapshot.conventions:
            sections.append(SectionInput(SectionName.CONVENTIONS.value, snapshot.conventions))

        if snapshot.vocabulary:
            content = '\n'.join(f"- **{v.term}**: {v.definition}" for v in snapshot.vocabulary)
            sections.append(SectionInput(SectionName.VOCABULARY.value, content))

        recent = snapshot.latest_session
        if recent is not None:
            lines = [f"Last session ({recent.date}): {recent.summary}"]
            if recent.next_step:
                lines.append(f"Next: {recent.next_step}")
            sections.append(SectionInput(SectionName.SESSION_LOG.value, '\n'.join(lines)))

        return sections

    def compile(self, snapshot: ContextSnapshot, budget: int) -> CompiledContext:
        """
        Compile the snapshot into at most `budget` tokens.

        Args:
            snapshot: Loaded context snapshot
            budget: Total token budget

        Returns:
            CompiledContext with sections in priority order
        """
        compiled: List[CompiledSection] = []
        remaining = budget

        for section in sort_by_priority(self.build_sections(snapshot), lambda s: s.name):
            tokens = self.tokenizer.count_tokens(section.content)
            allocation = self.budget_manager.allocate(section.name, tokens, remaining)

            if not allocation.capped:
                if tokens <= remaining:
                    compiled.append(CompiledSection(section.name, section.content, tokens, False))
                    remaining -= tokens
                else:
                    fitted = self.tokenizer.fit_to_budget(section.content, max(remaining, 0))
                    compiled.append(CompiledSection(section.name, fitted.text, max(remaining, 0), fitted.truncated))
                    remaining = 0
                continue

            if remaining <= 0:
                break

            allocated = allocation.allocated_tokens
            if allocated <= 0:
                continue

            if tokens <= allocated:
                compiled.append(CompiledSection(section.name, section.content, tokens, False))
                remaining -= tokens
            else:
                fitted = self.tokenizer.fit_to_budget(section.content, allocated)
                compiled.append(CompiledSection(section.name, fitted.text, allocated, True))
                remaining -= allocated

        total_tokens = sum(s.tokens for s in compiled)
        return CompiledContext(sections=compiled, total_tokens=total_tokens, budget=budget)


def compile_context(snapshot: ContextSnapshot, budget: int) -> CompiledContext:
    """Compile a snapshot with the default tokenizer and cap policy."""
    return ContextCompiler().compile(snapshot, budget)
