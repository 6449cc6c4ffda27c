"""
Configuration management and validation for agentbox.

Provides configuration loading, validation and management for the execution
supervisor, its default agent options, logging and telemetry.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List
from pydantic import BaseModel, Field, SecretStr, ValidationError

from agentbox.lib.errors import InvalidConfiguration
from agentbox.models.sandbox_policy import AgentOptions


class ObservabilityConfig(BaseModel):
    """Configuration for observability settings."""
    enabled: bool = False
    service_name: str = "agentbox"
    service_version: str = "1.0.0"
    environment: str = "development"
    otlp_endpoint: str = "http://localhost:4317"
    trace_sampling_ratio: float = Field(default=1.0, ge=0.0, le=1.0)
    export_timeout: int = Field(default=30, gt=0)
    resource_attributes: Dict[str, str] = Field(default_factory=dict)


class LoggingConfig(BaseModel):
    """Configuration for logging settings."""
    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    format: str = Field(default="structured", pattern="^(structured|simple)$")
    log_to_file: bool = False
    directory: str = "~/.agentbox/logs"
    max_file_size: int = Field(default=10 * 1024 * 1024, gt=0)  # 10MB
    backup_count: int = Field(default=5, ge=1)
    include_trace: bool = True
    environment: str = "development"


class AgentboxConfig(BaseModel):
    """Main agentbox configuration."""
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    defaults: AgentOptions = Field(default_factory=AgentOptions)

    workflow_id: str = "agentbox"
    model: Optional[str] = None
    inject_environment: bool = False
    anthropic_api_key: Optional[SecretStr] = None

    # Global settings
    debug: bool = False
    config_file_path: Optional[str] = None


class ConfigurationManager:
    """Manages agentbox configuration loading and validation."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or self._get_default_config_path()
        self.config: Optional[AgentboxConfig] = None

    def _get_default_config_path(self) -> str:
        """Get the default configuration file path."""
        # Check environment variable first
        if "AGENTBOX_CONFIG_PATH" in os.environ:
            return os.environ["AGENTBOX_CONFIG_PATH"]

        # Check standard locations
        candidates = [
            "~/.agentbox/config.yaml",
            "./agentbox.yaml"
        ]

        for candidate in candidates:
            path = Path(candidate).expanduser()
            if path.exists():
                return str(path)

        # Return default location
        return "~/.agentbox/config.yaml"

    def load_config(self, config_path: Optional[str] = None) -> AgentboxConfig:
        """Load and validate configuration from file.

        A missing file is not an error: defaults apply, merged with any
        environment overrides.
        """
        if config_path:
            self.config_path = config_path

        config_file = Path(self.config_path).expanduser()
        config_data: Dict[str, Any] = {}

        try:
            if config_file.exists():
                with open(config_file, 'r') as f:
                    config_data = yaml.safe_load(f) or {}

            if not isinstance(config_data, dict):
                raise InvalidConfiguration(f"Config file {config_file} must contain a mapping")

            # Merge with environment variables
            config_data = self._merge_environment_config(config_data)

            # Validate and create configuration object
            self.config = AgentboxConfig(**config_data)
            self.config.config_file_path = str(config_file) if config_file.exists() else None

            return self.config

        except yaml.YAMLError as e:
            raise InvalidConfiguration(f"Invalid YAML in config file {config_file}: {e}")
        except ValidationError as e:
            raise InvalidConfiguration(f"Configuration validation failed: {e}")
        except OSError as e:
            raise InvalidConfiguration(f"Error loading configuration: {e}")

    def write_default_config(self, config_path: Optional[str] = None, overwrite: bool = False) -> Path:
        """Write a default configuration file and return its path."""
        config_file = Path(config_path or self.config_path).expanduser()

        if config_file.exists() and not overwrite:
            raise InvalidConfiguration(f"Config file already exists: {config_file}")

        defaults = AgentOptions()
        default_config = {
            "workflow_id": "agentbox",
            "defaults": {
                "maxTurns": defaults.max_turns,
                "enableFileAccess": defaults.enable_file_access,
                "enableCodeExecution": defaults.enable_code_execution,
                "enableBashCommands": defaults.enable_bash_commands,
                "allowedCommands": defaults.allowed_commands,
                "timeoutMs": defaults.timeout_ms,
                "returnIntermediateSteps": defaults.return_intermediate_steps,
                "enableStreaming": defaults.enable_streaming
            },
            "logging": {
                "level": os.getenv("AGENTBOX_LOG_LEVEL", "INFO"),
                "log_to_file": False,
                "directory": "~/.agentbox/logs"
            },
            "observability": {
                "enabled": False,
                "service_name": "agentbox",
                "otlp_endpoint": os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
            }
        }

        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(config_file, 'w') as f:
                yaml.dump(default_config, f, default_flow_style=False, indent=2, sort_keys=False)
        except OSError as e:
            raise InvalidConfiguration(f"Error writing configuration: {e}")

        return config_file

    def _merge_environment_config(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Merge configuration with environment variables."""
        env_mappings = {
            "AGENTBOX_LOG_LEVEL": ["logging", "level"],
            "AGENTBOX_TIMEOUT_MS": ["defaults", "timeout_ms"],
            "AGENTBOX_ENABLE_BASH": ["defaults", "enable_bash_commands"],
            "AGENTBOX_ALLOWED_COMMANDS": ["defaults", "allowed_commands"],
            "AGENTBOX_WORKSPACE_PATH": ["defaults", "workspace_path"],
            "ANTHROPIC_API_KEY": ["anthropic_api_key"],
            "OTEL_EXPORTER_OTLP_ENDPOINT": ["observability", "otlp_endpoint"]
        }

        for env_var, config_path in env_mappings.items():
            if env_var in os.environ:
                value: Any = os.environ[env_var]

                # Type conversion for specific fields
                if env_var == "AGENTBOX_TIMEOUT_MS":
                    try:
                        value = int(value)
                    except ValueError:
                        raise InvalidConfiguration(f"{env_var} must be an integer, got {value!r}")
                elif env_var == "AGENTBOX_ENABLE_BASH":
                    value = value.lower() in ("true", "1", "yes")
                elif env_var == "AGENTBOX_LOG_LEVEL":
                    value = value.upper()

                # Set nested configuration value
                current = config_data
                for key in config_path[:-1]:
                    current = current.setdefault(key, {})

                # Options may be written under either name; the override wins
                if config_path[0] == "defaults":
                    alias = AgentOptions.model_fields[config_path[-1]].alias
                    current.pop(alias, None)
                current[config_path[-1]] = value

        return config_data

    def get_config(self) -> AgentboxConfig:
        """Get the loaded configuration."""
        if self.config is None:
            raise InvalidConfiguration("Configuration not loaded. Call load_config() first.")
        return self.config

    def validate_config(self) -> List[str]:
        """Validate the current configuration and return any warnings."""
        warnings = []
        config = self.get_config()

        if config.anthropic_api_key is None:
            warnings.append("No Anthropic API key configured; agent runs will fail")

        if config.defaults.enable_bash_commands and not config.defaults.allowed_command_list:
            warnings.append("Bash commands enabled with an empty allowlist; every command will be blocked")

        if config.defaults.workspace_path and not os.path.isabs(config.defaults.workspace_path):
            warnings.append(f"Workspace path is not absolute: {config.defaults.workspace_path}")

        if config.debug and config.observability.environment == "production":
            warnings.append("Debug mode enabled in production environment")

        if config.observability.trace_sampling_ratio < 1.0 and config.observability.environment == "development":
            warnings.append("Trace sampling ratio less than 1.0 in development environment")

        return warnings

    def reload_config(self) -> AgentboxConfig:
        """Reload configuration from file."""
        return self.load_config()


# Global configuration manager instance
_config_manager: Optional[ConfigurationManager] = None


def initialize_config(config_path: Optional[str] = None) -> ConfigurationManager:
    """Initialize global configuration manager."""
    global _config_manager
    _config_manager = ConfigurationManager(config_path)
    _config_manager.load_config()
    return _config_manager


def get_config_manager() -> ConfigurationManager:
    """Get the global configuration manager instance."""
    if _config_manager is None:
        raise InvalidConfiguration("Configuration not initialized. Call initialize_config() first.")
    return _config_manager


def get_config() -> AgentboxConfig:
    """Get the global configuration."""
    return get_config_manager().get_config()
