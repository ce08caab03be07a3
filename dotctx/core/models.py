"""Records held in a .ctx store and the snapshot that aggregates them."""

import re
from typing import List, Optional
from dataclasses import dataclass, field
from enum import Enum

from ..config.settings import CtxConfig, get_default_config


LINE_SUFFIX_PATTERN = re.compile(r':\d+$')


class WorkState(Enum):
    """States of the work-in-progress record."""
    STARTING = "starting"
    IN_PROGRESS = "in-progress"
    BLOCKED = "blocked"
    REVIEWING = "reviewing"
    DONE = "done"
    UNSET = ""


class LoopStatus(Enum):
    """Open loop lifecycle: open -> resolved, never reopened."""
    OPEN = "open"
    RESOLVED = "resolved"


class Severity(Enum):
    """Landmine severity, in display order."""
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @classmethod
    def parse(cls, value: Optional[str]) -> 'Severity':
        """Parse a severity string, defaulting to WARNING."""
        try:
            return cls((value or '').strip().lower())
        except ValueError:
            return cls.WARNING

    @property
    def rank(self) -> int:
        return list(Severity).index(self)


SEVERITY_TAGS = {
    Severity.CRITICAL: '[CRITICAL] ',
    Severity.INFO: '[info] ',
}


@dataclass
class StackConfig:
    """Tech-stack descriptor (stack.yaml)."""
    name: str = ''
    language: List[str] = field(default_factory=list)
    framework: List[str] = field(default_factory=list)
    build: List[str] = field(default_factory=list)
    test: List[str] = field(default_factory=list)
    deploy: str = ''
    notes: str = ''
    updated_at: str = ''


@dataclass
class CurrentState:
    """Work-in-progress state (current.yaml)."""
    branch: str = ''
    task: str = ''
    state: str = ''
    next_step: str = ''
    blocked_by: str = ''
    files_touched: List[str] = field(default_factory=list)
    updated_at: str = ''


@dataclass
class OpenLoop:
    """Unfinished task with a time-to-live."""
    id: int
    description: str
    created_at: str
    ttl: str = '14d'
    status: str = LoopStatus.OPEN.value
    context: str = ''

    @property
    def is_open(self) -> bool:
        return self.status == LoopStatus.OPEN.value


@dataclass
class Decision:
    """Append-only decision log entry."""
    decision: str
    rejected: str = ''
    why: str = ''
    date: str = ''


@dataclass
class Landmine:
    """Code that looks wrong but is intentional."""
    description: str
    file: str = ''
    why: str = ''
    date: str = ''
    severity: str = Severity.WARNING.value

    @property
    def path(self) -> str:
        """Referenced file with any ':lineNumber' suffix stripped."""
        return LINE_SUFFIX_PATTERN.sub('', self.file)

    @property
    def severity_rank(self) -> int:
        return Severity.parse(self.severity).rank

    @property
    def severity_tag(self) -> str:
        """Display prefix; warnings, the default, carry none."""
        return SEVERITY_TAGS.get(Severity.parse(self.severity), '')


@dataclass
class VocabEntry:
    """Project vocabulary term."""
    term: str
    definition: str


@dataclass
class SessionNote:
    """Summary of one work session."""
    id: str
    date: str = ''
    summary: str = ''
    state: str = ''
    next_step: str = ''
    files_touched: List[str] = field(default_factory=list)
    landmines_added: List[str] = field(default_factory=list)
    loops_added: List[str] = field(default_factory=list)


@dataclass
class ContextSnapshot:
    """Everything loaded from a .ctx store for one invocation."""
    stack: Optional[StackConfig] = None
    current: Optional[CurrentState] = None
    open_loops: List[OpenLoop] = field(default_factory=list)
    architecture: str = ''
    conventions: str = ''
    decisions: List[Decision] = field(default_factory=list)
    landmines: List[Landmine] = field(default_factory=list)
    vocabulary: List[VocabEntry] = field(default_factory=list)
    sessions: List[SessionNote] = field(default_factory=list)
    config: CtxConfig = field(default_factory=get_default_config)

    @classmethod
    def empty(cls, config: Optional[CtxConfig] = None) -> 'ContextSnapshot':
        """Snapshot with no records; always renderable."""
        return cls(config=config or get_default_config())

    @property
    def active_loops(self) -> List[OpenLoop]:
        return [loop for loop in self.open_loops if loop.is_open]

    @property
    def latest_session(self) -> Optional[SessionNote]:
        return self.sessions[0] if self.sessions else None

    @property
    def has_task(self) -> bool:
        return bool(self.current and self.current.task)


@dataclass
class CompiledSection:
    """A named section after budget allocation."""
    name: str
    content: str
    tokens: int
    truncated: bool = False


@dataclass
class CompiledContext:
    """Result of compiling a snapshot into a budget."""
    sections: List[CompiledSection]
    total_tokens: int
    budget: int

    def get_section(self, name: str) -> Optional[CompiledSection]:
        return next((s for s in self.sections if s.name == name), None)


@dataclass
class Capsule:
    """Task-scoped, budget-fitted context bundle."""
    markdown: str
    resume: str
    tokens: int


@dataclass
class PreflightChecklist:
    """Warnings and risks relevant to a task."""
    landmines: List[Landmine]
    decisions: List[Decision]
    ripple_map: List[str]
    open_loops: List[OpenLoop]
    formatted: str
