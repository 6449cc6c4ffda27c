"""
agentbox - Sandboxed, audited execution of autonomous coding agents.

This package runs an LLM coding agent inside a per-execution workspace,
inspects every tool invocation against a capability policy, enforces a hard
deadline and records an audit trail of each run.
"""

__version__ = "1.0.0"

from .models import *
from .services import *

__all__ = [
    "models",
    "services",
    "lib",
    "cli"
]
