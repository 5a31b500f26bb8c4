"""Engine configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

ENV_PREFIX = "PYORCHESTRA_"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class EngineConfig:
    """
    Settings applied to every run started by a WorkflowEngine.

    Usage:
        config = EngineConfig(max_concurrent_steps_per_workflow=10)
        engine = WorkflowEngine(executor).with_config(config)

        # Or from the environment:
        # $ export PYORCHESTRA_MAX_CONCURRENT_STEPS=10
        config = EngineConfig.from_env()
    """

    max_concurrent_steps_per_workflow: int = 5
    """Concurrency cap for the parallel strategy."""

    default_workflow_timeout_seconds: float = 300
    """Used when a definition's timeout_seconds is <= 0."""

    default_step_timeout_seconds: float | None = None
    """Per-attempt budget for steps that set none. None means unlimited."""

    enable_step_retry: bool = True
    """When False, step retry policies are ignored and every step gets one attempt."""

    enable_workflow_timeouts: bool = True
    validate_workflows: bool = True

    def __post_init__(self) -> None:
        if self.max_concurrent_steps_per_workflow < 1:
            raise ValueError(
                "max_concurrent_steps_per_workflow must be >= 1, "
                f"got {self.max_concurrent_steps_per_workflow}"
            )
        if self.default_workflow_timeout_seconds <= 0:
            raise ValueError(
                "default_workflow_timeout_seconds must be positive, "
                f"got {self.default_workflow_timeout_seconds}"
            )
        if self.default_step_timeout_seconds is not None and self.default_step_timeout_seconds <= 0:
            raise ValueError(
                "default_step_timeout_seconds must be positive or None, "
                f"got {self.default_step_timeout_seconds}"
            )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> EngineConfig:
        """Build a config from PYORCHESTRA_* environment variables.

        Recognised variables:
            PYORCHESTRA_MAX_CONCURRENT_STEPS
            PYORCHESTRA_WORKFLOW_TIMEOUT_SECONDS
            PYORCHESTRA_STEP_TIMEOUT_SECONDS
            PYORCHESTRA_ENABLE_STEP_RETRY
            PYORCHESTRA_ENABLE_WORKFLOW_TIMEOUTS
            PYORCHESTRA_VALIDATE_WORKFLOWS

        Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        readers = {
            "MAX_CONCURRENT_STEPS": ("max_concurrent_steps_per_workflow", int),
            "WORKFLOW_TIMEOUT_SECONDS": ("default_workflow_timeout_seconds", float),
            "STEP_TIMEOUT_SECONDS": ("default_step_timeout_seconds", float),
            "ENABLE_STEP_RETRY": ("enable_step_retry", _env_bool),
            "ENABLE_WORKFLOW_TIMEOUTS": ("enable_workflow_timeouts", _env_bool),
            "VALIDATE_WORKFLOWS": ("validate_workflows", _env_bool),
        }
        for suffix, (field_name, parse) in readers.items():
            value = env.get(f"{ENV_PREFIX}{suffix}")
            if value:
                kwargs[field_name] = parse(value)

        return cls(**kwargs)

    def with_max_concurrent_steps(self, max_concurrent: int) -> EngineConfig:
        """Return a copy with a different concurrency cap."""
        return replace(self, max_concurrent_steps_per_workflow=max_concurrent)

    def effective_workflow_timeout(self, timeout_seconds: float) -> float:
        """Timeout to arm for a definition declaring ``timeout_seconds``."""
        if timeout_seconds > 0:
            return timeout_seconds
        return self.default_workflow_timeout_seconds
