"""Budget manager for token allocation across compiled sections."""

import math
from typing import Dict, Optional
from dataclasses import dataclass

from .priority import get_priority


# Highest rank that is never pre-capped (current, landmines)
UNCAPPED_MAX_RANK = 1

# Share of the *remaining* budget a section of a given rank may take
DEFAULT_CAP_RATIOS: Dict[int, float] = {
    2: 0.30,  # decisions
    3: 0.20,  # ripple_map
    4: 0.15,  # open_loops
}
DEFAULT_TAIL_RATIO = 0.50  # conventions, architecture, vocabulary, session_log, unknown


@dataclass
class BudgetAllocation:
    """Result of budget allocation for a section."""
    section_name: str
    allocated_tokens: int
    priority: int
    cap: Optional[int] = None

    @property
    def capped(self) -> bool:
        return self.cap is not None


class BudgetManager:
    """Greedy, priority-ordered token allocation with per-rank caps."""

    def __init__(self,
                 cap_ratios: Optional[Dict[int, float]] = None,
                 tail_ratio: float = DEFAULT_TAIL_RATIO):
        """
        Initialize budget manager.

        Args:
            cap_ratios: Cap ratio per priority rank for capped sections
            tail_ratio: Cap ratio for every rank not listed in cap_ratios
        """
        self.cap_ratios = dict(DEFAULT_CAP_RATIOS if cap_ratios is None else cap_ratios)
        self.tail_ratio = tail_ratio

    def is_uncapped(self, priority: int) -> bool:
        return priority <= UNCAPPED_MAX_RANK

    def cap_ratio(self, priority: int) -> Optional[float]:
        """Cap ratio for a rank; None for uncapped ranks."""
        if self.is_uncapped(priority):
            return None
        return self.cap_ratios.get(priority, self.tail_ratio)

    def calculate_cap(self, priority: int, remaining: int) -> Optional[int]:
        """Token cap for a rank given the remaining budget."""
        ratio = self.cap_ratio(priority)
        if ratio is None:
            return None
        return math.floor(max(remaining, 0) * ratio)

    def allocate(self, section_name: str, section_tokens: int, remaining: int) -> BudgetAllocation:
        """
        Allocate tokens for one section against the running remaining budget.

        Uncapped sections get what they need up to everything remaining;
        capped sections get min(tokens, cap, remaining).
        """
        priority = get_priority(section_name)
        remaining = max(remaining, 0)
        cap = self.calculate_cap(priority, remaining)

        if cap is None:
            allocated = min(section_tokens, remaining)
        else:
            allocated = min(section_tokens, cap, remaining)

        return BudgetAllocation(
            section_name=section_name,
            allocated_tokens=allocated,
            priority=priority,
            cap=cap
        )
