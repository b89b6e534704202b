"""Pipeline runner: ordered, fail-fast execution of build and maintenance tasks."""

from __future__ import annotations

from .models import PipelineResult, PipelineStep, RunContext, StepResult, TaskOutcome
from .runner import execute_step, load_pipeline, run_pipeline
from .tasks import TASKS, get_task

__all__ = [
    "TASKS",
    "PipelineResult",
    "PipelineStep",
    "RunContext",
    "StepResult",
    "TaskOutcome",
    "execute_step",
    "get_task",
    "load_pipeline",
    "run_pipeline",
]
