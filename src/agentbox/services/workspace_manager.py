"""Workspace manager allocating and tearing down isolated agent directories."""

import asyncio
import logging
import os
import re
import secrets
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from agentbox.lib.errors import ForbiddenPath, InvalidConfiguration, WorkspaceCreationFailed
from agentbox.lib.metrics import get_metrics_collector
from agentbox.models.audit_record import AuditAction
from agentbox.models.workspace_context import WorkspaceContext
from agentbox.services.audit_sink import AuditSink


logger = logging.getLogger(__name__)

DENIED_WORKSPACE_PREFIXES = ("/etc", "/root", "/sys", "/proc", "/dev", "/boot")
WORKSPACE_NAMESPACE = "agentbox"
SUFFIX_BYTES = 8


def _safe_path_component(value: str) -> str:
    """Make an identifier usable as a single directory name."""
    component = re.sub(r"[^A-Za-z0-9_.-]", "_", value)
    if component in ("", ".", ".."):
        return "unknown"
    return component


class WorkspaceManager:
    """Creates one isolated working directory per run and removes it afterwards."""

    def __init__(
        self,
        base_directory: Optional[str] = None,
        audit_sink: Optional[AuditSink] = None,
        actor_name: str = "agentbox"
    ):
        """Initialize the workspace manager.

        Args:
            base_directory: Root for default workspaces (system temp dir if None)
            audit_sink: Optional sink receiving workspace lifecycle events
            actor_name: Actor recorded on audit events
        """
        self.base_directory = base_directory or tempfile.gettempdir()
        self.audit_sink = audit_sink
        self.actor_name = actor_name
        self.logger = logging.getLogger(__name__)

    def resolve_workspace_path(self, workflow_id: str, custom_path: Optional[str] = None) -> str:
        """Validate a custom path and derive the run's workspace directory.

        Args:
            workflow_id: Owning workflow identifier
            custom_path: Optional caller-supplied parent directory

        Returns:
            Absolute, resolved workspace path with a random suffix

        Raises:
            InvalidConfiguration: If the custom path is not absolute
            ForbiddenPath: If the custom path is inside a sensitive directory
        """
        random_id = secrets.token_hex(SUFFIX_BYTES)

        if custom_path:
            if not os.path.isabs(custom_path):
                raise InvalidConfiguration("Workspace path must be an absolute path")

            normalized = os.path.normpath(custom_path)
            for candidate in (custom_path, normalized):
                if any(candidate.startswith(denied) for denied in DENIED_WORKSPACE_PREFIXES):
                    raise ForbiddenPath(
                        "Workspace path cannot be in sensitive system directories: "
                        f"{', '.join(DENIED_WORKSPACE_PREFIXES)}"
                    )

            return str(Path(normalized).resolve() / f"agent-{random_id}")

        base = Path(self.base_directory).resolve()
        return str(base / WORKSPACE_NAMESPACE / _safe_path_component(workflow_id) / random_id)

    async def create_workspace(
        self,
        workflow_id: str,
        execution_id: str,
        custom_path: Optional[str] = None
    ) -> WorkspaceContext:
        """Create a sandboxed workspace directory for agent execution.

        Raises:
            InvalidConfiguration: If the custom path is not absolute
            ForbiddenPath: If the custom path is inside a sensitive directory
            WorkspaceCreationFailed: If the directory cannot be created
        """
        workspace_path = self.resolve_workspace_path(workflow_id, custom_path)

        try:
            await asyncio.to_thread(self._make_directory, workspace_path)
        except OSError as e:
            raise WorkspaceCreationFailed(f"Failed to create workspace {workspace_path}: {e}") from e

        workspace = WorkspaceContext(
            path=workspace_path,
            workflow_id=workflow_id,
            execution_id=execution_id
        )

        get_metrics_collector().workspace_created()
        self.logger.info("Created sandboxed workspace", extra=workspace.to_log_entry())
        if self.audit_sink is not None:
            self.audit_sink.record(
                AuditAction.WORKSPACE_CREATED, workflow_id, execution_id,
                self.actor_name, {"workspace": workspace_path}
            )

        return workspace

    async def destroy_workspace(self, workspace: WorkspaceContext) -> None:
        """Remove the workspace tree. Never raises.

        A workspace that no longer exists is left alone, so repeated calls are
        harmless.
        """
        if not os.path.lexists(workspace.path):
            self.logger.debug(f"Workspace already removed: {workspace.path}")
            return

        try:
            await asyncio.to_thread(shutil.rmtree, workspace.path)
        except FileNotFoundError:
            return
        except OSError as e:
            self.logger.warning(
                "Failed to cleanup workspace",
                extra={"workspace_path": workspace.path, "error": str(e)}
            )
            return

        get_metrics_collector().workspace_destroyed()
        self.logger.info("Cleaned up sandboxed workspace", extra={"workspace_path": workspace.path})
        if self.audit_sink is not None:
            self.audit_sink.record(
                AuditAction.WORKSPACE_DESTROYED, workspace.workflow_id, workspace.execution_id,
                self.actor_name, {"workspace": workspace.path}
            )

    @staticmethod
    def _make_directory(workspace_path: str) -> None:
        path = Path(workspace_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.mkdir(exist_ok=False)
