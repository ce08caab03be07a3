"""Tests for loading a .ctx store."""

import logging
from datetime import date

import pytest

from dotctx.config.settings import get_default_config
from dotctx.core.models import ContextSnapshot
from dotctx.services.loader import (
    find_ctx_dir, load_context, parse_decisions, parse_landmines, parse_open_loops, parse_vocabulary,
)

LANDMINES_MD = """
# Landmines

Format: - description — why

| Description | File | Why | Date | Severity |
|---|---|---|---|---|
| console.error in serve | src/mcp/server.ts:12 | stdio transport | 2026-01-01 | critical |
| Odd sleep | src/retry.ts | rate limit | 2026-01-02 | |

- Double encoding in export — legacy clients
"""


class TestParsers:
    """Test cases for markdown and YAML record parsers."""

    def test_landmine_table_and_bullets(self):
        """Table rows and em-dash bullets both become landmines."""
        landmines = parse_landmines(LANDMINES_MD)
        assert [landmine.description for landmine in landmines] == [
            "console.error in serve", "Odd sleep", "Double encoding in export",
        ]
        assert landmines[0].severity == "critical"
        assert landmines[0].path == "src/mcp/server.ts"
        assert landmines[1].severity == "warning"
        assert landmines[2].why == "legacy clients"

    def test_decision_table(self):
        """Decision rows need four cells."""
        content = (
            "| Decision | Rejected | Why | Date |\n"
            "|---|---|---|---|\n"
            "| Use Redis | Memcached | Persistence | 2026-01-01 |\n"
            "| Incomplete | row |\n"
        )
        decisions = parse_decisions(content)
        assert len(decisions) == 1
        assert decisions[0].rejected == "Memcached"

    def test_vocabulary_table(self):
        """Vocabulary rows map term to definition."""
        content = "| Term | Definition |\n|---|---|\n| Capsule | Task bundle |\n"
        vocab = parse_vocabulary(content)
        assert [(v.term, v.definition) for v in vocab] == [("Capsule", "Task bundle")]

    def test_open_loops_default_ttl(self):
        """Missing ttl and status take defaults; YAML dates become ISO strings."""
        loops = parse_open_loops({"loops": [{"id": 3, "description": "x", "created_at": date(2026, 1, 1)}]}, "7d")
        assert loops[0].ttl == "7d"
        assert loops[0].status == "open"
        assert loops[0].created_at == "2026-01-01"

    def test_open_loops_tolerates_junk(self):
        """Non-mapping input yields no loops."""
        assert parse_open_loops(None) == []
        assert parse_open_loops(["not", "a", "mapping"]) == []


class TestLoadContext:
    """Test cases for load_context."""

    def test_missing_directory_is_empty(self, tmp_path):
        """A path with no store loads the empty snapshot."""
        snapshot = load_context(tmp_path / ".ctx")
        assert snapshot == ContextSnapshot.empty()

    def test_empty_directory_uses_default_config(self, tmp_path):
        """An empty store has no records and the default budget."""
        (tmp_path / ".ctx").mkdir()
        snapshot = load_context(tmp_path / ".ctx")
        assert snapshot.current is None
        assert snapshot.landmines == []
        assert snapshot.config.budget.default == 2000

    def test_full_store(self, ctx_store):
        """Every store file is read into the snapshot."""
        ctx_dir = ctx_store({
            "current.yaml": """
                branch: main
                task: Add caching
                state: in-progress
                files_touched: [src/cache.py]
                updated_at: 2026-01-01T10:00:00Z
            """,
            "stack.yaml": "name: api\nlanguage: Python\n",
            "open-loops.yaml": "loops:\n  - id: 1\n    description: Flaky test\n    created_at: 2026-01-01\n",
            "landmines.md": LANDMINES_MD,
            "architecture.md": "# Architecture\n## Ripple map\n- `src/a.py` → `src/b.py`\n",
            "conventions.md": "- Use snake_case\n",
            ".ctxrc": "budget:\n  default: 1500\nfreshness:\n  max_sessions: 2\n",
            "sessions/2026-01-01.yaml": "summary: first\n",
            "sessions/2026-01-02.yaml": "summary: second\n",
            "sessions/2026-01-03.yaml": "summary: third\n",
        })
        snapshot = load_context(ctx_dir)
        assert snapshot.current.task == "Add caching"
        assert snapshot.current.files_touched == ["src/cache.py"]
        assert snapshot.stack.language == ["Python"]
        assert snapshot.open_loops[0].created_at == "2026-01-01"
        assert len(snapshot.landmines) == 3
        assert "Ripple map" in snapshot.architecture
        assert snapshot.config.budget.default == 1500
        assert [s.summary for s in snapshot.sessions] == ["third", "second"]
        assert snapshot.sessions[0].id == "2026-01-03"

    def test_malformed_yaml_is_logged_and_skipped(self, ctx_store, caplog):
        """Unparseable YAML reads as absent."""
        ctx_dir = ctx_store({"current.yaml": "task: [unclosed\n"})
        with caplog.at_level(logging.WARNING, logger="dotctx.services.loader"):
            snapshot = load_context(ctx_dir)
        assert snapshot.current is None
        assert "current.yaml" in caplog.text

    @pytest.mark.parametrize("ctxrc", [
        "budget: 3000\n",
        "freshness: 30d\n",
        "adapters:\n  claude: CLAUDE.md\n",
        "budget:\n  adapters: [1, 2]\n",
        "priority_order: current\n",
    ])
    def test_misshapen_ctxrc_falls_back_to_defaults(self, ctx_store, ctxrc):
        """Nested .ctxrc blocks of the wrong type read as defaults instead of raising."""
        ctx_dir = ctx_store({".ctxrc": ctxrc, "current.yaml": "task: x\n"})
        snapshot = load_context(ctx_dir)
        assert snapshot.current.task == "x"
        assert snapshot.config.budget.default == 2000
        assert snapshot.config.budget.adapters == {}
        assert snapshot.config.freshness.stale_threshold == "48h"
        assert snapshot.config.priority_order == get_default_config().priority_order

    def test_misshapen_adapter_entry_keeps_defaults(self, ctx_store):
        """A scalar adapter entry becomes a default AdapterConfig."""
        ctx_dir = ctx_store({".ctxrc": "adapters:\n  claude: CLAUDE.md\n"})
        adapter = load_context(ctx_dir).config.get_adapter_config("claude")
        assert adapter.output == ""
        assert adapter.include_bootstrap is True

    def test_unknown_state_reads_as_unset(self, ctx_store):
        """States outside the known set are dropped."""
        ctx_dir = ctx_store({"current.yaml": "task: x\nstate: sleeping\n"})
        assert load_context(ctx_dir).current.state == ""

    def test_find_ctx_dir_walks_up(self, tmp_path):
        """The nearest ancestor store is found."""
        (tmp_path / ".ctx").mkdir()
        nested = tmp_path / "src" / "deep"
        nested.mkdir(parents=True)
        assert find_ctx_dir(str(nested)) == (tmp_path / ".ctx").resolve()
