"""AgentOutputRecord accumulating the translated output of one agent run."""

from typing import Any, Dict, List, Optional


class AgentOutputRecord:
    """Output of a single run, built incrementally and finalized once.

    Depending on the requested mode the finalized output is either the full,
    ordered sequence of translated entries or one collapsed summary record
    holding the final text and the workspace path.
    """

    def __init__(self, include_intermediate_steps: bool = False):
        self.include_intermediate_steps = include_intermediate_steps
        self._entries: List[Dict[str, Any]] = []
        self._final_output = ""
        self._finalized: Optional[List[Dict[str, Any]]] = None

    @property
    def entries(self) -> List[Dict[str, Any]]:
        return list(self._entries)

    @property
    def final_output(self) -> str:
        return self._final_output

    @property
    def is_finalized(self) -> bool:
        return self._finalized is not None

    def add_entry(self, entry: Dict[str, Any]) -> None:
        """Append a translated message entry."""
        self._ensure_open()
        self._entries.append(entry)

    def capture_result(self, output: str) -> None:
        """Record the agent's final textual output."""
        self._ensure_open()
        self._final_output = output

    def finalize(self, workspace_path: str) -> List[Dict[str, Any]]:
        """Freeze the record and produce the caller-facing output items.

        Raises:
            RuntimeError: If the record was already finalized
        """
        self._ensure_open()
        if self.include_intermediate_steps:
            self._finalized = list(self._entries)
        else:
            self._finalized = [{"output": self._final_output, "workspace": workspace_path}]
        return list(self._finalized)

    def _ensure_open(self) -> None:
        if self._finalized is not None:
            raise RuntimeError("AgentOutputRecord has already been finalized")
