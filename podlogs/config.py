"""Configuration management for pod log collection."""

import os
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

import yaml
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from .log_collector.options import LogRequestOptions


class KubernetesConfig(BaseModel):
    """Cluster access configuration."""
    kubeconfig: Optional[str] = Field(default=None, description="Path to kubeconfig, default location if unset")
    context: Optional[str] = Field(default=None, description="Kubeconfig context, current context if unset")
    in_cluster: bool = Field(default=False, description="Use the in-cluster service account")
    default_namespace: str = Field(default="default", description="Namespace for resources without one")


class LogOptionsConfig(BaseModel):
    """Default options applied to every log request."""
    follow: bool = Field(default=False, description="Keep streams open and follow new output")
    previous: bool = Field(default=False, description="Read logs of the previous container instance")
    timestamps: bool = Field(default=False, description="Prefix lines with timestamps")
    since_seconds: Optional[int] = Field(default=None, ge=1, description="Only lines newer than this many seconds")
    tail_lines: Optional[int] = Field(default=None, ge=0, description="Only the last N lines")
    limit_bytes: Optional[int] = Field(default=None, ge=1, description="Stop after this many bytes")

    def to_options(self, now: Optional[datetime] = None) -> "LogRequestOptions":
        from .log_collector.options import LogRequestOptions

        since = None
        if self.since_seconds is not None:
            since = (now or datetime.now(timezone.utc)) - timedelta(seconds=self.since_seconds)
        return LogRequestOptions(
            follow=self.follow or None,
            previous=self.previous or None,
            timestamps=self.timestamps or None,
            since=since,
            tail_lines=self.tail_lines,
            limit_bytes=self.limit_bytes,
        )


class ArchiverConfig(BaseModel):
    """Main configuration for log collection and archival."""

    log_level: str = Field(default="INFO", description="Logging level")

    # Output settings
    output_directory: str = Field(default="pod-logs", description="Directory archived logs are written to")
    chunk_size: int = Field(default=64 * 1024, ge=1, description="Bytes read from a log stream at a time")

    # Concurrency settings
    max_concurrency: Optional[int] = Field(default=None, ge=1, description="Concurrent streams, unbounded if unset")
    timeout_seconds: Optional[float] = Field(default=None, gt=0, description="Deadline for one collection run")

    kubernetes: KubernetesConfig = Field(default_factory=KubernetesConfig)
    log_options: LogOptionsConfig = Field(default_factory=LogOptionsConfig)


def load_config(config_path: Optional[str] = None) -> ArchiverConfig:
    """Load configuration from file or environment variables."""
    if config_path is None:
        config_path = os.getenv("PODLOGS_CONFIG", "config/podlogs.yaml")

    config_data = {}

    # Load from file if exists
    if os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}

    # Override with environment variables
    env_overrides = {
        "log_level": os.getenv("PODLOGS_LOG_LEVEL"),
        "output_directory": os.getenv("PODLOGS_OUTPUT_DIR"),
        "max_concurrency": os.getenv("PODLOGS_MAX_CONCURRENCY"),
        "timeout_seconds": os.getenv("PODLOGS_TIMEOUT"),
    }
    kube_overrides = {
        "kubeconfig": os.getenv("KUBECONFIG"),
        "context": os.getenv("PODLOGS_CONTEXT"),
        "default_namespace": os.getenv("PODLOGS_NAMESPACE"),
    }

    # Filter out None values and convert types
    for key, value in env_overrides.items():
        if value is not None:
            if key in ["max_concurrency"]:
                value = int(value)
            elif key in ["timeout_seconds"]:
                value = float(value)
            config_data[key] = value

    for key, value in kube_overrides.items():
        if value is not None:
            config_data.setdefault("kubernetes", {})[key] = value

    return ArchiverConfig(**config_data)


def get_config() -> ArchiverConfig:
    """Get the global configuration instance."""
    return load_config()
