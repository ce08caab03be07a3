"""Configuration for the .ctx store."""

from .settings import CtxConfig, BudgetConfig, FreshnessConfig, AdapterConfig, get_default_config

__all__ = ["CtxConfig", "BudgetConfig", "FreshnessConfig", "AdapterConfig", "get_default_config"]
