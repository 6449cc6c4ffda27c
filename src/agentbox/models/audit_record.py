"""AuditRecord model for supervision events."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


SENSITIVE_KEYS = [
    'password', 'token', 'key', 'secret', 'credential',
    'auth', 'authorization', 'cookie'
]


class AuditAction(str, Enum):
    """Audit action category enumeration."""

    AGENT_INIT = "AGENT_INIT"
    AGENT_START = "AGENT_START"
    TOOL_USE = "TOOL_USE"
    AGENT_COMPLETE = "AGENT_COMPLETE"
    WORKSPACE_CREATED = "WORKSPACE_CREATED"
    WORKSPACE_DESTROYED = "WORKSPACE_DESTROYED"


def sanitize_detail(detail: Dict[str, Any]) -> Dict[str, Any]:
    """Redact values stored under credential-like keys, recursively."""
    sanitized = {}
    for key, value in detail.items():
        key_lower = str(key).lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_detail(value)
        else:
            sanitized[key] = value
    return sanitized


class AuditRecord(BaseModel):
    """
    Write-once log entry for a lifecycle or policy decision of an agent run.

    Records are ordered by emission time and never edited or removed.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    record_id: str = Field(default_factory=lambda: str(uuid4()), description="Unique identifier for the audit record")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="When the event occurred")
    action: AuditAction = Field(..., description="Action category")
    workflow_id: str = Field(..., description="Owning workflow identifier")
    execution_id: str = Field(..., description="Owning execution identifier")
    actor: str = Field(..., description="Component or node that emitted the event")
    detail: Dict[str, Any] = Field(default_factory=dict, description="Event detail (sanitized)")

    @field_validator('detail')
    def sanitize_sensitive_data(cls, v):
        """Sanitize sensitive data from the detail map."""
        return sanitize_detail(v)

    def to_log_entry(self) -> Dict[str, Any]:
        """Convert to structured log entry format."""
        return {
            "record_id": self.record_id,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
            "workflow_id": self.workflow_id,
            "execution_id": self.execution_id,
            "actor": self.actor,
            "detail": self.detail,
        }
