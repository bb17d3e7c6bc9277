"""
Optional agent identity detection.

The core services always receive the agent kind explicitly. This adapter
offers a best guess for the CLI when the caller does not pass --agent.
"""

import os
import shutil
from enum import Enum
from typing import Callable, Mapping, Optional


class AgentKind(str, Enum):
    """Known coding agents."""

    CLAUDE = "claude"
    CURSOR = "cursor"
    COPILOT = "copilot"
    CODEX = "codex"
    AIDER = "aider"
    GEMINI = "gemini"
    OPENCODE = "opencode"

    @classmethod
    def get_binary_name(cls, kind: "AgentKind") -> str:
        return kind.value

    @classmethod
    def is_installed(cls, kind: "AgentKind", which: Callable[[str], Optional[str]] = shutil.which) -> bool:
        """Check if an agent's CLI is on PATH."""
        return which(cls.get_binary_name(kind)) is not None


EXPLICIT_ENV = "BRANCH_ORCHESTRATOR_AGENT"

ENV_MARKERS: dict[AgentKind, tuple[str, ...]] = {
    AgentKind.CLAUDE: ("CLAUDECODE", "CLAUDE_CODE_ENTRYPOINT"),
    AgentKind.CURSOR: ("CURSOR_TRACE_ID", "CURSOR_AGENT"),
    AgentKind.CODEX: ("CODEX_SANDBOX", "CODEX_HOME"),
    AgentKind.AIDER: ("AIDER_MODEL",),
    AgentKind.GEMINI: ("GEMINI_CLI",),
    AgentKind.OPENCODE: ("OPENCODE",),
    AgentKind.COPILOT: ("GITHUB_COPILOT_AGENT",),
}

DEFAULT_AGENT = "agent"


def detect_agent_kind(
    environ: Optional[Mapping[str, str]] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> str:
    """
    Guess which agent is running.

    Checks, in order: an explicit override variable, agent-specific
    environment markers, then the single installed agent CLI if exactly
    one is found.

    Args:
        environ: Environment to inspect. Defaults to os.environ.
        which: PATH lookup, replaceable in tests.

    Returns:
        Agent kind string, or "agent" when nothing matches.
    """
    environ = os.environ if environ is None else environ

    explicit = environ.get(EXPLICIT_ENV, "").strip()
    if explicit:
        return explicit

    for kind, markers in ENV_MARKERS.items():
        if any(environ.get(marker) for marker in markers):
            return kind.value

    installed = [kind for kind in AgentKind if AgentKind.is_installed(kind, which)]
    if len(installed) == 1:
        return installed[0].value

    return DEFAULT_AGENT
