"""Section ranking shared by the compiler and budget manager."""

from enum import Enum
from typing import Callable, List, TypeVar

T = TypeVar("T")


class SectionName(str, Enum):
    """Named content sections, declared in priority order."""
    CURRENT = "current"
    LANDMINES = "landmines"
    DECISIONS = "decisions"
    RIPPLE_MAP = "ripple_map"
    OPEN_LOOPS = "open_loops"
    CONVENTIONS = "conventions"
    ARCHITECTURE = "architecture"
    VOCABULARY = "vocabulary"
    SESSION_LOG = "session_log"

    @property
    def heading(self) -> str:
        return self.value.replace('_', ' ').title()


PRIORITY_ORDER: List[str] = [section.value for section in SectionName]


def get_priority(section_name: str) -> int:
    """Rank of a section; unknown names sort last."""
    try:
        return PRIORITY_ORDER.index(section_name)
    except ValueError:
        return len(PRIORITY_ORDER)


def sort_by_priority(items: List[T], name_of: Callable[[T], str]) -> List[T]:
    """Stable sort ascending by section rank."""
    return sorted(items, key=lambda item: get_priority(name_of(item)))
