"""Pipeline package exports."""

from .analyzer import PoolAnalyzer, analyze
from .orchestrator import SourceOrchestrator

__all__ = ["PoolAnalyzer", "SourceOrchestrator", "analyze"]
