"""Records describing pipeline steps and their outcomes."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from pageforge.errors import EXIT_FAILURE

if typ.TYPE_CHECKING:
    from pathlib import Path

    import requests

    from pageforge.planner import BuildPlan


@dc.dataclass(frozen=True, slots=True)
class PipelineStep:
    """One entry of a pipeline file's ``steps`` array.

    Attributes
    ----------
    index : int
        One-based position in the pipeline.
    task : str
        Task kind such as ``build`` or ``indexnow``.
    options : Mapping[str, Any]
        Raw step options, including ``task`` itself.
    """

    index: int
    task: str
    options: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)

    @property
    def allow_failure(self) -> bool:
        """Return whether a failure of this step lets the run continue."""
        value = self.options.get("allowFailure")
        if value is None and self.task == "exec":
            value = self.options.get("continueOnError")
        return value is True or (isinstance(value, str) and value.strip().lower() == "true")


@dc.dataclass(slots=True)
class TaskOutcome:
    """Value returned by a task executor."""

    success: bool
    message: str
    payload: dict[str, typ.Any] | None = None


@dc.dataclass(slots=True)
class StepResult:
    """Recorded outcome of one executed step.

    ``exit_code`` is the process exit code a failure of this step maps to:
    the error family's code when the step raised, otherwise ``1``.
    """

    index: int
    task: str
    label: str
    success: bool
    message: str
    duration_ms: int = 0
    payload: dict[str, typ.Any] | None = None
    allowed_failure: bool = False
    exit_code: int = EXIT_FAILURE

    @property
    def line(self) -> str:
        """Return the progress line printed by the CLI."""
        status = "ok" if self.success else "failed"
        return f"{self.label}: {status} - {self.message}"

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready mapping."""
        payload: dict[str, typ.Any] = {
            "index": self.index,
            "task": self.task,
            "label": self.label,
            "success": self.success,
            "message": self.message,
            "durationMs": self.duration_ms,
            "allowedFailure": self.allowed_failure,
        }
        if not self.success:
            payload["exitCode"] = self.exit_code
        if self.payload is not None:
            payload["payload"] = self.payload
        return payload


@dc.dataclass(slots=True)
class PipelineResult:
    """Outcome of a whole pipeline run."""

    steps: list[StepResult] = dc.field(default_factory=list)
    success: bool = True
    total_steps: int = 0

    @property
    def failed_step(self) -> StepResult | None:
        """Return the step that halted the run, if any."""
        for step in self.steps:
            if not step.success:
                return step
        return None

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready mapping."""
        return {
            "success": self.success,
            "totalSteps": self.total_steps,
            "executedSteps": len(self.steps),
            "steps": [step.to_dict() for step in self.steps],
        }


@dc.dataclass(slots=True)
class RunContext:
    """State shared between steps of one run.

    ``plan`` holds the plan produced by the most recent ``build`` step so a
    following ``verify`` step for the same configuration can reuse it.
    ``session`` is handed to network tasks; ``None`` lets each client open
    its own.
    """

    base_dir: Path
    plan: BuildPlan | None = None
    plan_config: Path | None = None
    session: requests.Session | None = None


__all__ = ["PipelineResult", "PipelineStep", "RunContext", "StepResult", "TaskOutcome"]
