"""Service components built on a loaded context snapshot."""

from .audit import AuditEngine
from .capsule import CapsuleGenerator
from .preflight import PreflightGenerator

__all__ = ["AuditEngine", "CapsuleGenerator", "PreflightGenerator"]
