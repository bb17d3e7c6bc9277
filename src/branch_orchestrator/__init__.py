"""
Branch Orchestrator - branch lifecycle and file coordination for coding agents.

This package keeps a disciplined branch hierarchy (session -> daily ->
weekly -> mainline) for several agents working concurrently on one git
repository, and lets them negotiate non-overlapping edit sets through an
on-disk declaration ledger.
"""

__version__ = "0.1.0"

from branch_orchestrator.config import ProjectConfig, load_config

__all__ = [
    "__version__",
    "ProjectConfig",
    "load_config",
]
