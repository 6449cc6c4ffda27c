"""Append-only audit sink for agent lifecycle and policy events."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from agentbox.models.audit_record import AuditAction, AuditRecord


logger = logging.getLogger(__name__)


class AuditSink:
    """Records audit events in emission order and mirrors them to the audit log.

    Recording never raises: an event that cannot be built or emitted is
    reported on the module logger and the run carries on.
    """

    def __init__(self, logger_name: str = "agentbox.audit"):
        self.audit_logger = logging.getLogger(logger_name)
        self._records: List[AuditRecord] = []

    def record(
        self,
        action: AuditAction,
        workflow_id: str,
        execution_id: str,
        actor_name: str,
        detail: Optional[Dict[str, Any]] = None
    ) -> Optional[AuditRecord]:
        """Record one audit event.

        Args:
            action: Action category
            workflow_id: Owning workflow identifier
            execution_id: Owning execution identifier
            actor_name: Component that emitted the event
            detail: Additional event detail

        Returns:
            The stored AuditRecord, or None if the event could not be recorded
        """
        try:
            audit_record = AuditRecord(
                action=action,
                workflow_id=workflow_id,
                execution_id=execution_id,
                actor=actor_name,
                detail=detail or {}
            )
            self._records.append(audit_record)
            self.audit_logger.info(
                f"[AUDIT] {actor_name}: {audit_record.action}",
                extra={"audit": audit_record.to_log_entry()}
            )
            return audit_record
        except Exception as e:
            logger.error(f"Failed to record audit event {action}: {e}")
            return None

    @property
    def records(self) -> Tuple[AuditRecord, ...]:
        """Snapshot of all recorded events in emission order."""
        return tuple(self._records)

    def filter(
        self,
        action: Optional[AuditAction] = None,
        execution_id: Optional[str] = None
    ) -> List[AuditRecord]:
        """Get audit records with optional filtering.

        Args:
            action: Filter by action category
            execution_id: Filter by execution identifier

        Returns:
            List of matching audit records
        """
        records = list(self._records)

        if action:
            action_value = action.value if isinstance(action, AuditAction) else action
            records = [r for r in records if r.action == action_value]

        if execution_id:
            records = [r for r in records if r.execution_id == execution_id]

        return records

    def __len__(self) -> int:
        return len(self._records)
