"""Unit tests for WorkspaceManager allocation and teardown."""

import os
from unittest.mock import patch

import pytest

from agentbox.lib.errors import ForbiddenPath, InvalidConfiguration, WorkspaceCreationFailed
from agentbox.models.audit_record import AuditAction
from agentbox.services.workspace_manager import WorkspaceManager


class TestResolveWorkspacePath:
    """Workspace path derivation and validation."""

    def test_default_layout(self, workspace_manager, workspace_base):
        path = workspace_manager.resolve_workspace_path("wf-1")

        parent, leaf = os.path.split(path)
        assert parent == str(workspace_base.resolve() / "agentbox" / "wf-1")
        assert len(leaf) == 16
        int(leaf, 16)

    def test_custom_path_layout(self, workspace_manager, tmp_path):
        path = workspace_manager.resolve_workspace_path("wf-1", str(tmp_path / "custom"))

        parent, leaf = os.path.split(path)
        assert parent == str((tmp_path / "custom").resolve())
        assert leaf.startswith("agent-")
        assert len(leaf) == len("agent-") + 16

    def test_suffixes_are_unique(self, workspace_manager):
        paths = {workspace_manager.resolve_workspace_path("wf") for _ in range(50)}
        assert len(paths) == 50

    def test_relative_custom_path_rejected(self, workspace_manager):
        with pytest.raises(InvalidConfiguration) as exc_info:
            workspace_manager.resolve_workspace_path("wf", "relative/dir")
        assert "absolute" in exc_info.value.message

    @pytest.mark.parametrize("custom_path", [
        "/etc/foo",
        "/root",
        "/sys/kernel",
        "/proc/1",
        "/dev/shm/x",
        "/boot/efi",
        "/etcetera",
    ])
    def test_sensitive_prefixes_rejected(self, workspace_manager, custom_path):
        with pytest.raises(ForbiddenPath):
            workspace_manager.resolve_workspace_path("wf", custom_path)

    def test_normalized_traversal_into_sensitive_directory_rejected(self, workspace_manager):
        with pytest.raises(ForbiddenPath):
            workspace_manager.resolve_workspace_path("wf", "/tmp/../etc/cron.d")

    def test_workflow_id_cannot_escape_base(self, workspace_manager, workspace_base):
        path = workspace_manager.resolve_workspace_path("../../escape")
        assert path.startswith(str(workspace_base.resolve() / "agentbox") + os.sep)


class TestWorkspaceLifecycle:
    """Creation and destruction of workspace directories."""

    @pytest.mark.asyncio
    async def test_create_and_destroy(self, workspace_manager, audit_sink):
        workspace = await workspace_manager.create_workspace("wf-1", "exec-1")

        assert os.path.isdir(workspace.path)
        assert os.path.isabs(workspace.path)
        assert workspace.workflow_id == "wf-1"
        assert workspace.execution_id == "exec-1"

        with open(os.path.join(workspace.path, "nested.txt"), "w") as f:
            f.write("data")
        os.makedirs(os.path.join(workspace.path, "a", "b"))

        await workspace_manager.destroy_workspace(workspace)

        assert not os.path.exists(workspace.path)
        actions = [record.action for record in audit_sink.records]
        assert actions == [AuditAction.WORKSPACE_CREATED.value, AuditAction.WORKSPACE_DESTROYED.value]

    @pytest.mark.asyncio
    async def test_destroy_is_idempotent(self, workspace_manager, audit_sink):
        workspace = await workspace_manager.create_workspace("wf-1", "exec-1")

        await workspace_manager.destroy_workspace(workspace)
        await workspace_manager.destroy_workspace(workspace)

        assert len(audit_sink.filter(action=AuditAction.WORKSPACE_DESTROYED)) == 1

    @pytest.mark.asyncio
    async def test_destroy_failure_is_swallowed(self, workspace_manager):
        workspace = await workspace_manager.create_workspace("wf-1", "exec-1")

        with patch("agentbox.services.workspace_manager.shutil.rmtree", side_effect=PermissionError("denied")):
            await workspace_manager.destroy_workspace(workspace)

        assert os.path.isdir(workspace.path)
        await workspace_manager.destroy_workspace(workspace)
        assert not os.path.exists(workspace.path)

    @pytest.mark.asyncio
    async def test_forbidden_path_creates_nothing(self, workspace_manager, audit_sink):
        with pytest.raises(ForbiddenPath):
            await workspace_manager.create_workspace("wf-1", "exec-1", "/etc/foo")

        assert len(audit_sink) == 0

    @pytest.mark.asyncio
    async def test_creation_failure(self, tmp_path, audit_sink):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        manager = WorkspaceManager(base_directory=str(blocker), audit_sink=audit_sink)

        with pytest.raises(WorkspaceCreationFailed):
            await manager.create_workspace("wf-1", "exec-1")

        assert len(audit_sink) == 0

    @pytest.mark.asyncio
    async def test_custom_path_is_created(self, workspace_manager, tmp_path):
        workspace = await workspace_manager.create_workspace("wf-1", "exec-1", str(tmp_path / "mine"))

        assert os.path.dirname(workspace.path) == str((tmp_path / "mine").resolve())
        assert os.path.isdir(workspace.path)

        await workspace_manager.destroy_workspace(workspace)
        assert os.path.isdir(tmp_path / "mine")
