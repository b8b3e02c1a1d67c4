"""Configuration loading with pydantic validation.

Priority, lowest to highest: defaults < TOML file < environment < explicit
overrides. TOML sections are flattened, so ``[exporter] otlp_endpoint = ...``
and a top-level ``otlp_endpoint = ...`` mean the same thing.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from demo_client.errors import ConfigError

CONFIG_FILE_NAME = "demo_client.toml"

# Environment variable -> config field
ENV_VARS: Dict[str, str] = {
    "OTEL_SERVICE_NAME": "service_name",
    "OTEL_EXPORTER_OTLP_ENDPOINT": "otlp_endpoint",
    "OTEL_EXPORTER_OTLP_PROTOCOL": "otlp_protocol",
    "OTEL_EXPORTER_OTLP_INSECURE": "otlp_insecure",
    "OTEL_EXPORTER_OTLP_TIMEOUT": "export_timeout",
    "OTEL_BSP_MAX_QUEUE_SIZE": "max_queue_size",
    "OTEL_BSP_MAX_EXPORT_BATCH_SIZE": "max_export_batch_size",
    "OTEL_BSP_SCHEDULE_DELAY": "schedule_delay_millis",
    "DEMO_SERVER_ENDPOINT": "server_endpoint",
    "DEMO_REQUEST_INTERVAL": "request_interval",
    "DEMO_REQUEST_TIMEOUT": "request_timeout",
    "DEMO_SHUTDOWN_TIMEOUT": "shutdown_timeout",
    "DEMO_FAIL_FAST": "fail_fast",
    "DEMO_ENABLE_CONSOLE_EXPORTER": "enable_console_exporter",
    "DEMO_ENABLE_SPAN_LOGGING": "enable_span_logging",
    "DEMO_QUEUE_DROP_POLICY": "queue_drop_policy",
}


class ClientConfig(BaseModel):
    """Validated settings for the tracing setup and the request loop."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Tracing
    service_name: str = "demo-client"
    tracer_name: str = "demo-client-tracer"
    operation_name: str = "ExecuteRequest"

    # Exporter
    otlp_endpoint: str = "0.0.0.0:4317"
    otlp_protocol: Literal["grpc", "http/protobuf"] = "grpc"
    otlp_insecure: bool = True
    export_timeout: float = Field(default=10.0, gt=0)
    enable_console_exporter: bool = False
    enable_span_logging: bool = False

    # Batching
    max_queue_size: int = Field(default=2048, gt=0)
    max_export_batch_size: int = Field(default=512, gt=0)
    schedule_delay_millis: int = Field(default=5000, gt=0)
    shutdown_timeout: float = Field(default=1.0, gt=0)
    queue_drop_policy: Literal["drop_oldest", "drop_newest"] = "drop_oldest"

    # Request loop
    server_endpoint: str = "http://0.0.0.0:7080/hello"
    request_interval: float = Field(default=1.0, ge=0)
    request_timeout: float = Field(default=10.0, gt=0)
    fail_fast: bool = False

    @model_validator(mode="after")
    def _check_batch_sizes(self) -> "ClientConfig":
        if self.max_export_batch_size > self.max_queue_size:
            raise ValueError("max_export_batch_size must not exceed max_queue_size")
        return self


def find_config_file() -> Optional[str]:
    """Look for a config file in the current directory, then the home directory."""
    for directory in (Path.cwd(), Path.home()):
        candidate = directory / CONFIG_FILE_NAME
        if candidate.is_file():
            return str(candidate)
    return None


def load_toml_config(path: str) -> Dict[str, Any]:
    """
    Load a TOML config file.

    Returns an empty dict when the file does not exist.

    Raises:
        ConfigError: If the file is not valid TOML
    """
    config_path = Path(path)
    if not config_path.is_file():
        return {}
    try:
        with config_path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError("Invalid TOML config file", details={"path": path, "error": e}) from e


def _flatten(data: Dict[str, Any]) -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            flat.update(value)
        else:
            flat[key] = value
    return flat


def load_config_from_env(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Collect config values from environment variables.

    Values stay strings; pydantic coerces them when the model is built.
    Unset variables are left out of the result.
    """
    environ = os.environ if environ is None else environ
    return {field: environ[var] for var, field in ENV_VARS.items() if var in environ}


def load_config_with_priority(
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Merge file, environment and explicit overrides into one flat dict.

    Without ``config_file`` the file is discovered and may be absent; a
    file named by the caller must exist.

    Raises:
        ConfigError: If ``config_file`` does not exist or is not valid TOML
    """
    merged: Dict[str, Any] = {}

    if config_file is not None and not Path(config_file).is_file():
        raise ConfigError("Config file not found", details={"path": config_file})
    path = config_file or find_config_file()
    if path:
        merged.update(_flatten(load_toml_config(path)))

    merged.update(load_config_from_env())

    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})
    return merged


def validate_config(values: Dict[str, Any]) -> ClientConfig:
    """
    Build a ClientConfig from raw values.

    Raises:
        ConfigError: If any value is missing, unknown or out of range
    """
    try:
        return ClientConfig(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError("Invalid configuration", details={"errors": problems}) from e


def load_config(config_file: Optional[str] = None, **overrides: Any) -> ClientConfig:
    """Load and validate configuration from every source."""
    return validate_config(load_config_with_priority(config_file=config_file, overrides=overrides))
