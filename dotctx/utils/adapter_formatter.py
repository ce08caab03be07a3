"""
Adapter formatter for rendering CompiledContext into each AI tool's instruction file.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..core.compiler import ContextCompiler
from ..core.models import CompiledContext, ContextSnapshot
from ..core.priority import SectionName

CLAUDE_BOOTSTRAP = """
# AI Context Bootstrap

This project uses `.ctx/` for structured AI context management.

**Before starting any coding task**, run: `dotctx preflight --task "your task description"`
This checks for landmines, constraining decisions, and ripple effects relevant to your task.

For full task-specific context: `dotctx pull --task "your task description"`
To find out why a file is the way it is: `dotctx why path/to/file`

Always check landmines before modifying code that looks wrong; it may be intentional.

## Development Workflow

1. **Read preflight output**: respect all landmines and constraining decisions shown
2. **Conventions are hard constraints**: anti-patterns listed above are things you MUST avoid
3. **Plan before multi-file changes**: if your changes affect 3+ files, state your approach first
4. **Landmines are sacred**: if preflight warns about a file, check landmines before "fixing" it
5. **Verify after implementation**: run the test suite before considering work done
6. **Stale context warnings are informational**: note them but don't block work
""".strip()

CURSOR_BOOTSTRAP = """
# AI Context
This project uses .ctx/ for structured context.
**Before starting any coding task**, run: `dotctx preflight --task "..."` to check for landmines and constraints.
For full context: `dotctx pull --task "..."`
Check .ctx/landmines.md before changing code that looks wrong.
""".strip()

COPILOT_BOOTSTRAP = """
## AI Context
This project uses `.ctx/` for structured context. Run `dotctx pull --task "..."` for task-specific context.
Check `.ctx/landmines.md` before changing code that looks wrong.
""".strip()


def section_title(name: str) -> str:
    try:
        return SectionName(name).heading
    except ValueError:
        return name.replace('_', ' ').title()


@dataclass
class Adapter:
    """A tool-specific renderer and the file it writes."""
    name: str
    render: Callable[[CompiledContext], str]
    output_path: str
    bootstrap: str = ''


class AdapterFormatter:
    """Compiles a snapshot and wraps it in each tool's framing."""

    def __init__(self, compiler: Optional[ContextCompiler] = None):
        self.compiler = compiler or ContextCompiler()
        self.adapters: Dict[str, Adapter] = {
            'claude': Adapter('claude', self.to_claude, 'CLAUDE.md', CLAUDE_BOOTSTRAP),
            'cursor': Adapter('cursor', self.to_cursor, '.cursorrules', CURSOR_BOOTSTRAP),
            'copilot': Adapter('copilot', self.to_copilot, '.github/copilot-instructions.md', COPILOT_BOOTSTRAP),
            'system': Adapter('system', self.to_system, ''),
        }

    def get_adapter(self, name: str) -> Adapter:
        if name not in self.adapters:
            raise ValueError(f"Unknown adapter: {name}. Use: {', '.join(self.adapter_names())}")
        return self.adapters[name]

    def adapter_names(self) -> List[str]:
        return list(self.adapters)

    def file_adapters(self) -> List[Adapter]:
        """Adapters that write a file (every one except 'system')."""
        return [adapter for adapter in self.adapters.values() if adapter.output_path]

    def output_path(self, name: str, snapshot: ContextSnapshot) -> str:
        """Output path for an adapter; .ctxrc may override it."""
        configured = snapshot.config.get_adapter_config(name)
        if configured and configured.output:
            return configured.output
        return self.get_adapter(name).output_path

    def compile(self, name: str, snapshot: ContextSnapshot, budget: Optional[int] = None) -> str:
        """
        Render the snapshot for one adapter.

        Args:
            name: Adapter name ('claude', 'cursor', 'copilot', 'system')
            snapshot: Loaded context snapshot
            budget: Explicit budget; else the adapter's configured budget, else the default

        Returns:
            Adapter output text
        """
        adapter = self.get_adapter(name)
        budget_config = snapshot.config.budget
        effective_budget = budget or (budget_config.for_adapter(name) if adapter.output_path else budget_config.default)
        compiled = self.compiler.compile(snapshot, effective_budget)

        configured = snapshot.config.get_adapter_config(name)
        include_bootstrap = configured.include_bootstrap if configured else True

        output = adapter.render(compiled)
        if include_bootstrap and adapter.bootstrap:
            output = f"{output}\n{adapter.bootstrap}"
        return output

    def to_claude(self, compiled: CompiledContext) -> str:
        lines = ['# Project Context', '']
        for section in compiled.sections:
            lines.append(f"## {section_title(section.name)}")
            lines.append(section.content)
            if section.truncated:
                lines.append('_(truncated)_')
            lines.append('')
        return '\n'.join(lines)

    def to_cursor(self, compiled: CompiledContext) -> str:
        lines = []
        for section in compiled.sections:
            lines.append(f"# {section_title(section.name)}")
            lines.append(section.content)
            lines.append('')
        return '\n'.join(lines)

    def to_copilot(self, compiled: CompiledContext) -> str:
        lines = ['# Project Guidelines', '']
        for section in compiled.sections:
            lines.append(f"## {section_title(section.name)}")
            lines.append(section.content)
            lines.append('')
        return '\n'.join(lines)

    def to_system(self, compiled: CompiledContext) -> str:
        lines = ['=== PROJECT CONTEXT ===', '']
        for section in compiled.sections:
            lines.append(f"--- {section.name.replace('_', ' ').upper()} ---")
            lines.append(section.content)
            lines.append('')
        return '\n'.join(lines)
