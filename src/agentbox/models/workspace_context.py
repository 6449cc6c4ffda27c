"""WorkspaceContext model identifying one isolated agent run."""

import os
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WorkspaceContext(BaseModel):
    """
    Identity of one isolated run: where it works and who owns it.

    Created once by the WorkspaceManager and destroyed exactly once when the
    owning batch ends, regardless of outcome.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Absolute, resolved workspace directory")
    workflow_id: str = Field(..., description="Owning workflow identifier")
    execution_id: str = Field(..., description="Owning execution identifier")
    created: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the workspace directory was created"
    )

    @field_validator('path')
    def validate_path_absolute(cls, v):
        """Workspace paths are always absolute."""
        if not os.path.isabs(v):
            raise ValueError("workspace path must be absolute")
        return v

    @field_validator('workflow_id', 'execution_id')
    def validate_identifier(cls, v):
        """Identifiers cannot be blank."""
        if not v.strip():
            raise ValueError("identifier cannot be empty")
        return v.strip()

    def to_log_entry(self) -> dict:
        """Convert to structured log fields."""
        return {
            "workspace_path": self.path,
            "workflow_id": self.workflow_id,
            "execution_id": self.execution_id,
            "created_at": self.created.isoformat(),
        }
