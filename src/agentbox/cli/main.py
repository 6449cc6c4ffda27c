"""
Main CLI application for agentbox.

Provides a command-line interface for running supervised agent batches and
checking commands and paths against a sandbox policy.
"""

import asyncio
import json
import logging
import sys
from typing import Optional, List, Dict, Any

import click
import yaml

from agentbox.lib.config import AgentboxConfig, ConfigurationManager, initialize_config
from agentbox.lib.errors import AgentboxError, InvalidConfiguration
from agentbox.lib.logging_config import setup_logging
from agentbox.lib.observability import initialize_telemetry, shutdown_telemetry
from agentbox.models.agent_message import ToolInvocation, ToolKind
from agentbox.models.sandbox_policy import AgentOptions
from agentbox.services.agent_stream import BaseAgentStream, ClaudeAgentStream
from agentbox.services.execution_supervisor import ExecutionSupervisor
from agentbox.services.policy_engine import PolicyEnforcer, is_path_contained


logger = logging.getLogger("agentbox.cli")


def create_agent_stream(config: AgentboxConfig) -> BaseAgentStream:
    """Create the agent collaborator described by the configuration."""
    return ClaudeAgentStream(model=config.model, inject_environment=config.inject_environment)


class AgentboxApplication:
    """Main agentbox application manager."""

    def __init__(self, config_path: Optional[str] = None, debug: bool = False):
        self.config_path = config_path
        self.debug = debug
        self.config: Optional[AgentboxConfig] = None
        self._telemetry_started = False

    def initialize(self) -> AgentboxConfig:
        """Load configuration and set up logging and telemetry."""
        config_manager = initialize_config(self.config_path)
        self.config = config_manager.get_config()

        logging_settings = self.config.logging.model_dump()
        if self.debug or self.config.debug:
            logging_settings["level"] = "DEBUG"
        setup_logging(logging_settings)

        if self.config.observability.enabled:
            initialize_telemetry(self.config.observability)
            self._telemetry_started = True
            logger.info("Observability initialized")

        return self.config

    def build_supervisor(self) -> ExecutionSupervisor:
        """Create an execution supervisor from the loaded configuration."""
        if self.config is None:
            raise RuntimeError("Application not initialized")

        api_key = self.config.anthropic_api_key
        return ExecutionSupervisor(
            agent_stream=create_agent_stream(self.config),
            api_key=api_key.get_secret_value() if api_key else None
        )

    def shutdown(self) -> None:
        """Flush telemetry if it was started."""
        if self._telemetry_started:
            shutdown_telemetry()
            self._telemetry_started = False


def _resolve_options(
    base: AgentOptions,
    options_json: Optional[str],
    overrides: Dict[str, Any]
) -> AgentOptions:
    """Layer JSON options and command-line flags over the configured defaults."""
    merged = base.model_dump()

    try:
        if options_json:
            supplied = json.loads(options_json)
            if not isinstance(supplied, dict):
                raise InvalidConfiguration("--options must be a JSON object")
            merged.update(AgentOptions.model_validate(supplied).model_dump(exclude_unset=True))

        merged.update({key: value for key, value in overrides.items() if value is not None})
        return AgentOptions.model_validate(merged)
    except json.JSONDecodeError as e:
        raise InvalidConfiguration(f"Invalid --options JSON: {e}")
    except ValueError as e:
        raise InvalidConfiguration(f"Invalid agent options: {e}")


def _emit(data: Any, output_format: str) -> None:
    if output_format == 'yaml':
        click.echo(yaml.safe_dump(data, default_flow_style=False, indent=2, sort_keys=False))
    else:
        click.echo(json.dumps(data, indent=2, default=str))


# CLI Commands

@click.group()
@click.option('--config', '-c', help='Configuration file path')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, config, debug):
    """agentbox: run coding agents in a supervised sandbox."""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['debug'] = debug


@cli.command()
@click.argument('prompts', nargs=-1)
@click.option('--prompt-file', type=click.File('r'), help='Read prompts from a file, one per line')
@click.option('--options', 'options_json', help='Agent options as a JSON object')
@click.option('--workspace', '-w', help='Absolute workspace base directory')
@click.option('--timeout-ms', type=int, help='Per-item deadline in milliseconds')
@click.option('--max-turns', type=int, help='Maximum agent turns per item')
@click.option('--enable-bash/--disable-bash', default=None, help='Allow shell commands')
@click.option('--allowed-commands', help='Comma-separated base command allowlist')
@click.option('--intermediate-steps/--no-intermediate-steps', default=None, help='Return every translated message')
@click.option('--continue-on-fail', is_flag=True, help='Record item errors and keep going')
@click.option('--workflow-id', help='Workflow identifier for audit events')
@click.option('--output-format', '-f', type=click.Choice(['json', 'yaml']), default='json', help='Output format')
@click.pass_context
def run(ctx, prompts, prompt_file, options_json, workspace, timeout_ms, max_turns, enable_bash,
        allowed_commands, intermediate_steps, continue_on_fail, workflow_id, output_format):
    """Run the agent once per PROMPT in a shared sandboxed workspace."""
    items: List[str] = list(prompts)
    if prompt_file is not None:
        items.extend(line.rstrip("\n") for line in prompt_file if line.strip())

    if not items:
        click.echo("No prompts given", err=True)
        sys.exit(2)

    app = AgentboxApplication(ctx.obj.get('config_path'), ctx.obj.get('debug', False))
    try:
        config = app.initialize()
        options = _resolve_options(config.defaults, options_json, {
            "workspace_path": workspace,
            "timeout_ms": timeout_ms,
            "max_turns": max_turns,
            "enable_bash_commands": enable_bash,
            "allowed_commands": allowed_commands,
            "return_intermediate_steps": intermediate_steps,
        })

        supervisor = app.build_supervisor()
        results = asyncio.run(supervisor.execute(
            items,
            options,
            workflow_id=workflow_id or config.workflow_id,
            continue_on_fail=continue_on_fail
        ))
        _emit(results, output_format)

    except AgentboxError as e:
        click.echo(json.dumps(e.to_error_record()), err=True)
        sys.exit(1)
    finally:
        app.shutdown()


@cli.command('check-command')
@click.argument('command')
@click.option('--enable-bash/--disable-bash', default=True, help='Evaluate with shell commands enabled')
@click.option('--allowed-commands', help='Comma-separated base command allowlist')
@click.pass_context
def check_command(ctx, command, enable_bash, allowed_commands):
    """Evaluate COMMAND against the sandbox policy; exit 1 if blocked."""
    try:
        defaults = ConfigurationManager(ctx.obj.get('config_path')).load_config().defaults
        options = _resolve_options(defaults, None, {
            "enable_bash_commands": enable_bash,
            "allowed_commands": allowed_commands,
        })
    except AgentboxError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    invocation = ToolInvocation(kind=ToolKind.SHELL, tool="Bash", input={"command": command})
    decision = PolicyEnforcer(options.to_sandbox_policy()).evaluate(invocation)

    click.echo(json.dumps(decision, indent=2))
    if not decision["allowed"]:
        sys.exit(1)


@cli.command('check-path')
@click.argument('candidate')
@click.option('--workspace', '-w', required=True, help='Workspace root to check against')
def check_path(candidate, workspace):
    """Check that CANDIDATE stays inside the workspace; exit 1 if it escapes."""
    contained = is_path_contained(candidate, workspace)
    click.echo(json.dumps({"path": candidate, "workspace": workspace, "contained": contained}, indent=2))
    if not contained:
        sys.exit(1)


@cli.command()
@click.pass_context
def validate(ctx):
    """Validate the agentbox configuration."""
    try:
        config_manager = ConfigurationManager(ctx.obj.get('config_path'))
        config = config_manager.load_config()
        warnings = config_manager.validate_config()

        click.echo("Configuration validation completed successfully!")
        click.echo(f"Configuration file: {config.config_file_path or 'none (defaults)'}")
        click.echo(f"Workflow: {config.workflow_id}")
        click.echo(f"Bash commands: {'enabled' if config.defaults.enable_bash_commands else 'disabled'}")
        click.echo(f"Allowed commands: {', '.join(config.defaults.allowed_command_list)}")
        click.echo(f"Timeout: {config.defaults.timeout_ms}ms")

        if warnings:
            click.echo("\nWarnings:")
            for warning in warnings:
                click.echo(f"  - {warning}")
        else:
            click.echo("\nNo warnings found.")

    except AgentboxError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)


@cli.command('init-config')
@click.option('--output', '-o', type=click.Path(), help='Where to write the configuration file')
@click.option('--force', is_flag=True, help='Overwrite an existing file')
@click.pass_context
def init_config(ctx, output, force):
    """Write a default configuration file."""
    try:
        config_manager = ConfigurationManager(ctx.obj.get('config_path'))
        path = config_manager.write_default_config(output, overwrite=force)
        click.echo(f"Configuration written to: {path}")
    except AgentboxError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)


if __name__ == '__main__':
    cli()
