"""Unit tests for the audit sink."""

import logging

from agentbox.models.audit_record import AuditAction
from agentbox.services.audit_sink import AuditSink


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TestAuditSink:
    """Audit event recording."""

    def test_records_in_emission_order(self, audit_sink):
        audit_sink.record(AuditAction.AGENT_INIT, "wf", "exec", "agentbox", {"maxTurns": 10})
        audit_sink.record(AuditAction.AGENT_START, "wf", "exec", "agentbox", {"itemIndex": 0})
        audit_sink.record(AuditAction.AGENT_COMPLETE, "wf", "exec", "agentbox", {"itemIndex": 0})

        assert [r.action for r in audit_sink.records] == ["AGENT_INIT", "AGENT_START", "AGENT_COMPLETE"]
        assert len(audit_sink) == 3

    def test_filter(self, audit_sink):
        audit_sink.record(AuditAction.TOOL_USE, "wf", "exec-1", "agentbox", {"tool": "Bash"})
        audit_sink.record(AuditAction.TOOL_USE, "wf", "exec-2", "agentbox", {"tool": "Read"})
        audit_sink.record(AuditAction.AGENT_START, "wf", "exec-1", "agentbox")

        assert len(audit_sink.filter(action=AuditAction.TOOL_USE)) == 2
        assert len(audit_sink.filter(action="TOOL_USE", execution_id="exec-1")) == 1
        assert len(audit_sink.filter(execution_id="exec-1")) == 2

    def test_emits_structured_log(self):
        handler = _ListHandler()
        audit_logger = logging.getLogger("agentbox.audit.test")
        audit_logger.addHandler(handler)
        audit_logger.setLevel(logging.INFO)
        try:
            sink = AuditSink(logger_name="agentbox.audit.test")
            sink.record(AuditAction.AGENT_START, "wf", "exec", "my-node", {"promptLength": 12})
        finally:
            audit_logger.removeHandler(handler)

        [log_record] = handler.records
        assert log_record.getMessage() == "[AUDIT] my-node: AGENT_START"
        assert log_record.audit["detail"]["promptLength"] == 12
        assert log_record.audit["workflow_id"] == "wf"

    def test_recording_failure_does_not_raise(self, audit_sink):
        assert audit_sink.record(AuditAction.AGENT_START, "wf", "exec", "agentbox") is not None
        assert audit_sink.record("NOT_AN_ACTION", "wf", "exec", "agentbox") is None
        assert len(audit_sink) == 1
