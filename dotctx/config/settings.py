"""Configuration settings for the .ctx store (.ctxrc)."""

from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
import yaml
from pathlib import Path


DEFAULT_PRIORITY_ORDER = [
    'current',
    'landmines',
    'decisions',
    'ripple_map',
    'open_loops',
    'conventions',
    'architecture',
    'vocabulary',
    'session_log',
]


def _as_dict(value: Any) -> Dict[str, Any]:
    """Nested .ctxrc blocks of the wrong shape read as empty."""
    return value if isinstance(value, dict) else {}


def _priority_order(value: Any) -> List[str]:
    if not isinstance(value, list) or not value:
        return list(DEFAULT_PRIORITY_ORDER)
    return [str(name) for name in value]


@dataclass
class BudgetConfig:
    """Token budget configuration."""
    default: int = 2000
    adapters: Dict[str, int] = field(default_factory=dict)

    def for_adapter(self, adapter_name: str) -> int:
        """Budget for an adapter, falling back to the default."""
        return self.adapters.get(adapter_name) or self.default


@dataclass
class FreshnessConfig:
    """Staleness and expiry thresholds (duration strings like '48h', '30d')."""
    stale_threshold: str = '48h'
    file_stale_threshold: str = '30d'
    loop_default_ttl: str = '14d'
    max_sessions: int = 5


@dataclass
class AdapterConfig:
    """Per-adapter output settings."""
    output: str = ''
    include_bootstrap: bool = True


@dataclass
class CtxConfig:
    """
    Main configuration for a .ctx store.

    `allocation` and `priority_order` are informational: they are kept for
    round-tripping and checked by validate(), but compilation always ranks
    sections by the fixed PRIORITY_ORDER.
    """
    version: int = 1
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    allocation: str = 'priority'
    priority_order: List[str] = field(default_factory=lambda: list(DEFAULT_PRIORITY_ORDER))
    freshness: FreshnessConfig = field(default_factory=FreshnessConfig)
    adapters: Dict[str, AdapterConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, config_dict: Optional[Dict[str, Any]]) -> 'CtxConfig':
        """Create configuration from dictionary, filling defaults for missing keys."""
        config_dict = config_dict or {}

        budget_data = _as_dict(config_dict.get('budget'))
        budget = BudgetConfig(
            default=int(budget_data.get('default', 2000)),
            adapters={name: int(value) for name, value in _as_dict(budget_data.get('adapters')).items()}
        )

        freshness_data = _as_dict(config_dict.get('freshness'))
        freshness = FreshnessConfig(
            stale_threshold=str(freshness_data.get('stale_threshold', '48h')),
            file_stale_threshold=str(freshness_data.get('file_stale_threshold', '30d')),
            loop_default_ttl=str(freshness_data.get('loop_default_ttl', '14d')),
            max_sessions=int(freshness_data.get('max_sessions', 5))
        )

        adapters = {}
        for name, adapter_data in _as_dict(config_dict.get('adapters')).items():
            adapter_data = _as_dict(adapter_data)
            adapters[name] = AdapterConfig(
                output=str(adapter_data.get('output', '')),
                include_bootstrap=bool(adapter_data.get('include_bootstrap', True))
            )

        return cls(
            version=int(config_dict.get('version', 1)),
            budget=budget,
            allocation=str(config_dict.get('allocation', 'priority')),
            priority_order=_priority_order(config_dict.get('priority_order')),
            freshness=freshness,
            adapters=adapters
        )

    @classmethod
    def from_yaml(cls, file_path: str) -> 'CtxConfig':
        """Load configuration from YAML file."""
        with open(file_path, 'r', encoding='utf-8') as f:
            config_dict = yaml.safe_load(f)
        return cls.from_dict(config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            'version': self.version,
            'budget': {
                'default': self.budget.default,
                'adapters': dict(self.budget.adapters)
            },
            'allocation': self.allocation,
            'priority_order': list(self.priority_order),
            'freshness': {
                'stale_threshold': self.freshness.stale_threshold,
                'file_stale_threshold': self.freshness.file_stale_threshold,
                'loop_default_ttl': self.freshness.loop_default_ttl,
                'max_sessions': self.freshness.max_sessions
            },
            'adapters': {
                name: {
                    'output': adapter.output,
                    'include_bootstrap': adapter.include_bootstrap
                }
                for name, adapter in self.adapters.items()
            }
        }

    def save_yaml(self, file_path: str):
        """Save configuration to YAML file."""
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    def get_adapter_config(self, adapter_name: str) -> Optional[AdapterConfig]:
        """Get output settings for a specific adapter."""
        return self.adapters.get(adapter_name)

    def validate(self) -> List[str]:
        """
        Validate configuration and return list of issues.

        Returns:
            List of validation issues (empty if valid)
        """
        # Imported here to keep the settings module free of core imports at load time
        from ..core.freshness import DURATION_PATTERN
        from ..core.priority import PRIORITY_ORDER

        issues = []

        if self.budget.default <= 0:
            issues.append("Default budget must be positive")

        for name, value in self.budget.adapters.items():
            if value <= 0:
                issues.append(f"Adapter '{name}': budget must be positive")

        if self.allocation != 'priority':
            issues.append(f"Unknown allocation strategy '{self.allocation}'")

        for section_name in self.priority_order:
            if section_name not in PRIORITY_ORDER:
                issues.append(f"Unknown section in priority_order: '{section_name}'")

        for key in ('stale_threshold', 'file_stale_threshold', 'loop_default_ttl'):
            value = getattr(self.freshness, key)
            if not DURATION_PATTERN.match(value):
                issues.append(f"freshness.{key}: invalid duration '{value}' (falls back to 48h)")

        if self.freshness.max_sessions < 1:
            issues.append("freshness.max_sessions must be at least 1")

        return issues


def get_default_config() -> CtxConfig:
    """Get the default configuration used when a store has no .ctxrc."""
    return CtxConfig()
