"""agentbox support library: configuration, errors, logging, metrics and telemetry."""
