"""
dotctx: compile a project's .ctx/ context store into AI-tool context.

This package loads the structured store (current state, landmines, decisions,
ripple map, open loops, conventions, vocabulary, sessions), fits it into a
token budget by priority, and derives task capsules, preflight checklists and
freshness audits from it.
"""

__version__ = "0.1.0"
__author__ = "dotctx contributors"

from .config.settings import CtxConfig, get_default_config
from .core.budget_manager import BudgetManager
from .core.compiler import ContextCompiler, compile_context
from .core.models import ContextSnapshot
from .core.tokenizer_service import TokenizerService, count_tokens, fit_to_budget
from .services.audit import AuditEngine, get_health_section, get_stale_file_warnings, run_audit
from .services.capsule import CapsuleGenerator, generate_capsule
from .services.loader import find_ctx_dir, load_context
from .services.preflight import PreflightGenerator, generate_preflight

__all__ = [
    "AuditEngine",
    "BudgetManager",
    "CapsuleGenerator",
    "ContextCompiler",
    "ContextSnapshot",
    "CtxConfig",
    "PreflightGenerator",
    "TokenizerService",
    "compile_context",
    "count_tokens",
    "find_ctx_dir",
    "fit_to_budget",
    "generate_capsule",
    "generate_preflight",
    "get_default_config",
    "get_health_section",
    "get_stale_file_warnings",
    "load_context",
    "run_audit",
]
