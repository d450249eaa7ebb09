"""Application services: tiered resolution, batch verification, replacement."""

from .auto_replacement import AutoReplacementOrchestrator, default_request
from .tiered_resolver import TieredResolver
from .verification_orchestrator import VerificationOrchestrator

__all__ = [
    "AutoReplacementOrchestrator",
    "TieredResolver",
    "VerificationOrchestrator",
    "default_request",
]
