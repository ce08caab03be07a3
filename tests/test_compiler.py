"""Tests for the context compiler."""

from dotctx.config.settings import CtxConfig
from dotctx.core.compiler import ContextCompiler, compile_context, format_decision, format_landmine
from dotctx.core.models import (
    ContextSnapshot, CurrentState, Decision, Landmine, OpenLoop, SessionNote, VocabEntry,
)
from dotctx.core.priority import PRIORITY_ORDER
from dotctx.core.tokenizer_service import count_tokens


def landmine(description="Legacy date format", file="src/data.ts", why="API compat"):
    return Landmine(description=description, file=file, why=why, date="2026-01-01")


def full_snapshot() -> ContextSnapshot:
    return ContextSnapshot(
        current=CurrentState(branch="main", task="Add caching", state="in-progress", next_step="write tests"),
        landmines=[landmine()],
        decisions=[Decision("Use TypeScript", "JavaScript", "Type safety", "2026-01-01")],
        architecture="# Architecture\nLayered design.",
        open_loops=[
            OpenLoop(1, "Flaky test", "2026-01-01", context="ci"),
            OpenLoop(2, "Old bug", "2026-01-01", status="resolved"),
        ],
        conventions="Use snake_case.",
        vocabulary=[VocabEntry("Capsule", "Task context bundle")],
        sessions=[SessionNote("s2", "2026-01-02", "Wired cache"), SessionNote("s1", "2026-01-01", "Older")],
    )


class TestFormatting:
    """Test cases for entry formatting."""

    def test_format_landmine(self):
        """Description, file and why are joined."""
        assert format_landmine(landmine()) == "Legacy date format (src/data.ts) — API compat"
        assert format_landmine(Landmine("Bare")) == "Bare"

    def test_format_decision(self):
        """Rejected alternatives use the given label."""
        decision = Decision("Use TypeScript", "JavaScript", "Type safety")
        assert format_decision(decision) == "Use TypeScript (over: JavaScript) — Type safety"
        assert format_decision(decision, rejected_label="rejected").startswith("Use TypeScript (rejected: ")


class TestContextCompiler:
    """Test cases for ContextCompiler."""

    def test_empty_snapshot_compiles_to_nothing(self):
        """No data, no sections, budget echoed."""
        compiled = compile_context(ContextSnapshot.empty(), 500)
        assert compiled.sections == []
        assert compiled.total_tokens == 0
        assert compiled.budget == 500

    def test_landmines_only_fit_whole(self):
        """A lone landmines section within budget is emitted untruncated."""
        snapshot = ContextSnapshot(landmines=[landmine()])
        compiled = compile_context(snapshot, 1000)
        assert [s.name for s in compiled.sections] == ["landmines"]
        assert compiled.sections[0].truncated is False

    def test_current_sorts_first(self):
        """Current leads whenever a task is set."""
        snapshot = ContextSnapshot(
            decisions=[Decision("Use TypeScript", "JavaScript", "Type safety")],
            current=CurrentState(task="Ship it"),
        )
        compiled = compile_context(snapshot, 1000)
        assert compiled.sections[0].name == "current"

    def test_current_without_task_is_omitted(self):
        """A current state with no task contributes nothing."""
        compiled = compile_context(ContextSnapshot(current=CurrentState(branch="main")), 1000)
        assert compiled.sections == []

    def test_sections_follow_priority_order(self):
        """Sections come out in rank order; resolved loops and older sessions are left out."""
        compiled = compile_context(full_snapshot(), 5000)
        assert [s.name for s in compiled.sections] == [
            "current", "landmines", "decisions", "open_loops", "conventions",
            "architecture", "vocabulary", "session_log",
        ]
        assert "Old bug" not in compiled.get_section("open_loops").content
        assert "Older" not in compiled.get_section("session_log").content
        assert compiled.total_tokens == sum(s.tokens for s in compiled.sections)

    def test_configured_priority_order_does_not_reorder(self):
        """The .ctxrc priority_order is informational; ranking stays fixed."""
        snapshot = full_snapshot()
        default_names = [s.name for s in compile_context(snapshot, 5000).sections]
        snapshot.config = CtxConfig.from_dict({"priority_order": list(reversed(PRIORITY_ORDER))})
        assert [s.name for s in compile_context(snapshot, 5000).sections] == default_names

    def test_total_never_exceeds_budget(self):
        """Token accounting stays within budget at every size."""
        snapshot = full_snapshot()
        for budget in (0, 3, 10, 25, 60, 200):
            assert compile_context(snapshot, budget).total_tokens <= budget

    def test_capped_section_is_truncated_to_share(self):
        """Decisions alone get 30% of the remaining budget."""
        decisions = [Decision(f"Decision number {i}", "", "because it is better") for i in range(30)]
        compiled = compile_context(ContextSnapshot(decisions=decisions), 100)
        section = compiled.get_section("decisions")
        assert section.truncated is True
        assert section.tokens == 30
        assert "[...truncated to fit budget]" in section.content

    def test_uncapped_overflow_consumes_budget_and_stops(self):
        """An oversized current section takes everything; later sections are dropped."""
        snapshot = ContextSnapshot(
            current=CurrentState(task=" ".join(["word"] * 100)),
            decisions=[Decision("Use TypeScript", "", "Type safety")],
        )
        compiled = compile_context(snapshot, 20)
        assert [s.name for s in compiled.sections] == ["current"]
        assert compiled.sections[0].truncated is True
        assert compiled.sections[0].tokens == 20

    def test_zero_allocation_section_is_dropped(self):
        """A capped section whose share floors to zero is skipped."""
        compiled = compile_context(ContextSnapshot(decisions=[Decision("Use X", "", "Y")]), 3)
        assert compiled.sections == []

    def test_tail_section_gets_half(self):
        """Conventions alone may take half of what remains."""
        conventions = " ".join(["rule"] * 100)
        compiled = compile_context(ContextSnapshot(conventions=conventions), 40)
        section = compiled.get_section("conventions")
        assert section.tokens == 20
        assert section.truncated is True

    def test_section_content_formats(self):
        """Rendered sections use bullet formats."""
        compiler = ContextCompiler()
        sections = {s.name: s.content for s in compiler.build_sections(full_snapshot())}
        assert sections["current"].splitlines()[:3] == ["Branch: main", "Task: Add caching", "State: in-progress"]
        assert "Next: write tests" in sections["current"]
        assert sections["landmines"] == "- Legacy date format (src/data.ts) — API compat"
        assert sections["vocabulary"] == "- **Capsule**: Task context bundle"
        assert sections["open_loops"] == "- Flaky test (ci)"
        assert sections["session_log"] == "Last session (2026-01-02): Wired cache"
        assert count_tokens(sections["conventions"]) == 3
