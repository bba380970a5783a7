"""Workflow engine configuration.

Centralizes the tunable parameters of the orchestrator, the step executor and
the execution registry.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional


class ConfigError(ValueError):
    """Raised when the engine configuration is invalid"""
    pass


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class EngineConfig:
    """All workflow engine configuration in one place."""

    # Retries
    backoff_base_seconds: float = 1.0
    """Retry delay is ``backoff_base_seconds * 2 ** attempt`` (attempt is zero-based)."""
    max_backoff_seconds: Optional[float] = None
    """Upper bound for a single retry delay. None means unbounded."""

    # Step execution
    enforce_step_timeouts: bool = False
    """Abort an attempt that runs longer than the step's timeout_seconds."""
    parallel_branches: bool = False
    """Run independent steps of a dependency level concurrently."""
    max_concurrency: int = 4
    """Max concurrent steps per run when parallel_branches is on."""

    # Execution retention
    retention_seconds: Optional[float] = 3600
    """Finished executions older than this are evicted. None keeps them."""
    max_executions: Optional[int] = 1000
    """Upper bound on stored executions; oldest finished ones go first."""

    # Catalog
    include_builtin_catalog: bool = True
    """Load the predefined productivity workflows at startup."""
    catalog_paths: List[str] = field(default_factory=list)
    """Extra YAML catalog files or directories."""

    # Logging
    log_level: str = "INFO"

    def __post_init__(self):
        errors = self.validate()
        if errors:
            raise ConfigError("; ".join(errors))

    def validate(self) -> List[str]:
        errors = []
        if self.backoff_base_seconds < 0:
            errors.append("backoff_base_seconds must be >= 0")
        if self.max_backoff_seconds is not None and self.max_backoff_seconds < 0:
            errors.append("max_backoff_seconds must be >= 0")
        if self.max_concurrency < 1:
            errors.append("max_concurrency must be >= 1")
        if self.retention_seconds is not None and self.retention_seconds <= 0:
            errors.append("retention_seconds must be > 0")
        if self.max_executions is not None and self.max_executions < 1:
            errors.append("max_executions must be >= 1")
        if str(self.log_level).upper() not in _LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return errors

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after the zero-based ``attempt`` failed"""
        delay = self.backoff_base_seconds * (2 ** attempt)
        if self.max_backoff_seconds is not None:
            delay = min(delay, self.max_backoff_seconds)
        return delay

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EngineConfig":
        """Build from the ``engine`` section of a config file"""
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown engine config keys: {', '.join(unknown)}")

        catalog_paths = data.get("catalog_paths")
        if isinstance(catalog_paths, str):
            data["catalog_paths"] = [catalog_paths]
        elif catalog_paths is None and "catalog_paths" in data:
            data["catalog_paths"] = []

        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigError(f"Invalid engine config: {e}")
