"""
Dependency Health

A tool for finding archived, deleted and stale dependencies of Go modules.
"""

__version__ = "0.1.0"
__author__ = "Imranur Rahman"

from .analyzer import DependencyAnalyzer
from .config import AnalyzerConfig
from .models import Dependency, Reason, Verdict, summarize
from .scheduler import DependencyScheduler

__all__ = [
    "AnalyzerConfig",
    "Dependency",
    "DependencyAnalyzer",
    "DependencyScheduler",
    "Reason",
    "Verdict",
    "summarize",
]
