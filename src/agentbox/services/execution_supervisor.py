"""Execution supervisor driving bounded, audited agent runs."""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from opentelemetry import trace
from pydantic import SecretStr

from agentbox.lib.errors import (
    AgentboxError,
    CommandBlocked,
    CredentialMissing,
    ExecutionTimeout,
    MissingInput,
    UpstreamStreamError,
)
from agentbox.lib.metrics import MetricsCollector, RunMetrics, RunOutcome, get_metrics_collector
from agentbox.models.agent_message import (
    AgentMessage,
    ResultMessage,
    ToolInvocation,
    ToolUseMessage,
    parse_agent_message,
)
from agentbox.models.audit_record import AuditAction
from agentbox.models.output_record import AgentOutputRecord
from agentbox.models.sandbox_policy import AgentOptions, SandboxPolicy
from agentbox.models.workspace_context import WorkspaceContext
from agentbox.services.agent_stream import AgentRequest, BaseAgentStream
from agentbox.services.audit_sink import AuditSink
from agentbox.services.policy_engine import PolicyEnforcer, build_sandboxed_environment
from agentbox.services.prompt import SYSTEM_MESSAGE, compose_prompt
from agentbox.services.result_translator import translate
from agentbox.services.workspace_manager import WorkspaceManager


tracer = trace.get_tracer(__name__)


class ExecutionSupervisor:
    """Runs an agent over a batch of prompts inside one supervised workspace.

    Each tool invocation is audited and checked against the run's policy before
    the next message is consumed. Every run is bounded by the policy deadline,
    and the workspace is torn down once per batch on every exit path.
    """

    def __init__(
        self,
        agent_stream: BaseAgentStream,
        workspace_manager: Optional[WorkspaceManager] = None,
        audit_sink: Optional[AuditSink] = None,
        api_key: Optional[str] = None,
        actor_name: str = "agentbox",
        metrics_collector: Optional[MetricsCollector] = None
    ):
        """Initialize the execution supervisor.

        Args:
            agent_stream: Agent collaborator yielding the message stream
            workspace_manager: Workspace allocator (created if None)
            audit_sink: Audit event sink (created if None)
            api_key: Credential passed to the agent for each call
            actor_name: Actor recorded on audit events
            metrics_collector: Metrics collector (global collector if None)
        """
        self.agent_stream = agent_stream
        self.audit_sink = audit_sink or AuditSink()
        self.workspace_manager = workspace_manager or WorkspaceManager(
            audit_sink=self.audit_sink, actor_name=actor_name
        )
        self.actor_name = actor_name
        self.metrics = metrics_collector or get_metrics_collector()
        self.logger = logging.getLogger(__name__)
        self._api_key = SecretStr(api_key) if api_key else None

    async def execute(
        self,
        prompts: Sequence[Optional[str]],
        options: Optional[AgentOptions] = None,
        workflow_id: str = "unknown",
        execution_id: Optional[str] = None,
        continue_on_fail: bool = False
    ) -> List[Dict[str, Any]]:
        """Run the agent once per prompt in a shared workspace.

        Args:
            prompts: One instruction per input item
            options: Caller-supplied configuration bundle
            workflow_id: Owning workflow identifier
            execution_id: Owning execution identifier (generated if None)
            continue_on_fail: Record item errors and carry on instead of aborting

        Returns:
            Output items in input order

        Raises:
            AgentboxError: Workspace errors, or the first item error when
                continue_on_fail is not set
        """
        options = options or AgentOptions()
        execution_id = execution_id or str(uuid4())
        policy = options.to_sandbox_policy()

        self.audit_sink.record(
            AuditAction.AGENT_INIT, workflow_id, execution_id, self.actor_name,
            {**policy.to_summary(), "maxTurns": options.max_turns}
        )

        results: List[Dict[str, Any]] = []
        workspace: Optional[WorkspaceContext] = None

        try:
            workspace = await self.workspace_manager.create_workspace(
                workflow_id, execution_id, options.workspace_path
            )
            policy = policy.bind_workspace(workspace.path)

            for item_index, prompt in enumerate(prompts):
                try:
                    results.extend(
                        await self.run_agent(prompt, policy, workspace, options, item_index)
                    )
                except AgentboxError as e:
                    e.with_item_index(item_index)
                    if continue_on_fail:
                        self.logger.warning(f"Item {item_index} failed: {e.message}")
                        results.append(e.to_error_record())
                        continue
                    raise
        finally:
            if workspace is not None:
                await self.workspace_manager.destroy_workspace(workspace)

        return results

    async def run_agent(
        self,
        prompt: Optional[str],
        policy: SandboxPolicy,
        workspace: WorkspaceContext,
        options: Optional[AgentOptions] = None,
        item_index: int = 0
    ) -> List[Dict[str, Any]]:
        """Run the agent for a single input item.

        Args:
            prompt: User instruction
            policy: Capability grant bound to the workspace
            workspace: Workspace the run is confined to
            options: Output mode, turn limit and system message
            item_index: Index of the input item

        Returns:
            The translated message sequence, or one summary record

        Raises:
            MissingInput: If the prompt is empty
            CredentialMissing: If no API key is configured
            CommandBlocked: If the agent requests a rejected command
            ExecutionTimeout: If the policy deadline expires
            UpstreamStreamError: If the agent stream fails
        """
        options = options or AgentOptions()

        if not prompt or not prompt.strip():
            raise MissingInput("No prompt provided for agent", item_index)

        self.audit_sink.record(
            AuditAction.AGENT_START, workspace.workflow_id, workspace.execution_id, self.actor_name,
            {"itemIndex": item_index, "promptLength": len(prompt), "workspace": workspace.path}
        )

        if self._api_key is None:
            raise CredentialMissing(
                "Anthropic API key not found. Please configure Anthropic credentials.", item_index
            )

        system_message = SYSTEM_MESSAGE if options.system_message is None else options.system_message
        output = AgentOutputRecord(include_intermediate_steps=options.include_intermediate_steps)
        invocations: List[ToolInvocation] = []
        started = time.perf_counter()

        with tracer.start_as_current_span("agentbox.run_agent") as span:
            span.set_attribute("agentbox.workflow_id", workspace.workflow_id)
            span.set_attribute("agentbox.item_index", item_index)

            try:
                async with self.agent_stream.credential_scope(self._api_key.get_secret_value()) as credential:
                    environment = build_sandboxed_environment(workspace.path)
                    environment.update(credential)
                    request = AgentRequest(
                        prompt=compose_prompt(system_message, workspace.path, policy, prompt),
                        max_turns=options.max_turns,
                        workspace_path=workspace.path,
                        policy=policy,
                        environment=environment
                    )

                    try:
                        await asyncio.wait_for(
                            self._consume_stream(request, policy, workspace, output, invocations, options, item_index),
                            timeout=policy.timeout_ms / 1000
                        )
                    except asyncio.TimeoutError:
                        self.logger.warning(
                            f"Agent run for item {item_index} timed out after {policy.timeout_ms}ms"
                        )
                        raise ExecutionTimeout(policy.timeout_ms, item_index) from None
                    finally:
                        environment.clear()
            except AgentboxError as e:
                self._record_run(workspace, started, len(invocations), e)
                raise

        self._record_run(workspace, started, len(invocations), None)
        return output.finalize(workspace.path)

    async def _consume_stream(
        self,
        request: AgentRequest,
        policy: SandboxPolicy,
        workspace: WorkspaceContext,
        output: AgentOutputRecord,
        invocations: List[ToolInvocation],
        options: AgentOptions,
        item_index: int
    ) -> None:
        """Consume the agent stream one message at a time.

        The stream is closed when consumption stops for any reason, including
        cancellation at the deadline.
        """
        enforcer = PolicyEnforcer(policy)
        messages = None

        try:
            messages = self.agent_stream.stream(request)
            async for raw in messages:
                self._handle_message(
                    parse_agent_message(raw), enforcer, workspace, output, invocations, options, item_index
                )
        except AgentboxError:
            raise
        except Exception as e:
            raise UpstreamStreamError(f"Agent stream failed: {e}", item_index) from e
        finally:
            aclose = getattr(messages, "aclose", None)
            if aclose is not None:
                await aclose()

    def _handle_message(
        self,
        message: AgentMessage,
        enforcer: PolicyEnforcer,
        workspace: WorkspaceContext,
        output: AgentOutputRecord,
        invocations: List[ToolInvocation],
        options: AgentOptions,
        item_index: int
    ) -> None:
        if options.enable_streaming:
            output.add_entry(translate(message, options.return_intermediate_steps))

        if isinstance(message, ResultMessage):
            output.capture_result(message.result)
            self.audit_sink.record(
                AuditAction.AGENT_COMPLETE, workspace.workflow_id, workspace.execution_id, self.actor_name,
                {"itemIndex": item_index, "resultLength": len(message.result)}
            )

        elif isinstance(message, ToolUseMessage):
            invocation = ToolInvocation.from_message(message)
            invocations.append(invocation)
            self.audit_sink.record(
                AuditAction.TOOL_USE, workspace.workflow_id, workspace.execution_id, self.actor_name,
                {
                    "itemIndex": item_index,
                    "tool": invocation.tool,
                    "toolKind": invocation.kind.value,
                    "toolInput": invocation.input,
                    "toolCallId": invocation.correlation_id,
                }
            )
            self.metrics.record_tool_invocation(invocation.kind.value, invocation.tool)

            decision = enforcer.evaluate(invocation)
            if not decision["allowed"]:
                self.logger.warning(
                    "Blocked dangerous command",
                    extra={
                        "command": decision["command"],
                        "item_index": item_index,
                        "reason": decision["reason"],
                    }
                )
                self.metrics.record_command_blocked(decision["reason"])
                raise CommandBlocked(decision["command"], item_index)

    def _record_run(
        self,
        workspace: WorkspaceContext,
        started: float,
        tool_invocations: int,
        error: Optional[AgentboxError]
    ) -> None:
        if error is None:
            outcome = RunOutcome.COMPLETED
        elif isinstance(error, CommandBlocked):
            outcome = RunOutcome.BLOCKED
        elif isinstance(error, ExecutionTimeout):
            outcome = RunOutcome.TIMEOUT
        else:
            outcome = RunOutcome.FAILED

        self.metrics.record_run(RunMetrics(
            workflow_id=workspace.workflow_id,
            outcome=outcome,
            duration_ms=int((time.perf_counter() - started) * 1000),
            tool_invocations=tool_invocations,
            error_type=type(error).__name__ if error else None
        ))
