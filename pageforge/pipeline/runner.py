"""Load pipeline files and run their steps in order.

A pipeline file is a JSON or YAML mapping with a ``steps`` array; each
step names a ``task`` and carries that task's options. Steps run strictly
in sequence. The first failing step halts the run unless it sets
``allowFailure``.

Examples
--------
>>> from pathlib import Path
>>> from pageforge.pipeline import run_pipeline
>>> result = run_pipeline(Path("pipeline.json"))  # doctest: +SKIP
>>> [step.label for step in result.steps]  # doctest: +SKIP
['[1/2] build', '[2/2] verify']
"""

from __future__ import annotations

import time
import typing as typ
from pathlib import Path

from pageforge.config.helpers import _lookup, load_document
from pageforge.errors import EXIT_FAILURE, ConfigError, PageforgeError, exit_code_for

from .models import PipelineResult, PipelineStep, RunContext, StepResult, TaskOutcome
from .options import resolve_options
from .tasks import get_task

if typ.TYPE_CHECKING:
    import requests

STEP_ERRORS = (PageforgeError, ValueError, RuntimeError, OSError)


def load_pipeline(path: Path) -> list[PipelineStep]:
    """Read the steps of the pipeline file at ``path``.

    Raises
    ------
    ConfigError
        If the file is missing or unparsable, has no ``steps`` array, or a
        step lacks a ``task`` string.
    """
    raw = load_document(path)
    entries = _lookup(raw, "steps")
    if not isinstance(entries, list):
        msg = "Pipeline config must include a steps array."
        raise ConfigError(msg)
    steps = []
    for index, entry in enumerate(entries, start=1):
        task = entry.get("task") if isinstance(entry, dict) else None
        if not isinstance(task, str) or not task.strip():
            msg = f"Pipeline step {index} must include a 'task' string."
            raise ConfigError(msg)
        steps.append(PipelineStep(index=index, task=task.strip(), options=dict(entry)))
    return steps


def execute_step(step: PipelineStep, context: RunContext) -> TaskOutcome:
    """Resolve ``step``'s options and run its executor.

    Errors propagate to the caller; :func:`run_pipeline` records them and the
    single-task CLI commands map them to exit codes.
    """
    definition = get_task(step.task)
    options = resolve_options(
        definition.options, step.options, context.base_dir, task=definition.name
    )
    return definition.execute(options, context)


def run_pipeline(
    source: Path | typ.Sequence[PipelineStep],
    base_dir: Path | None = None,
    *,
    session: requests.Session | None = None,
    on_step: typ.Callable[[StepResult], None] | None = None,
) -> PipelineResult:
    """Run every step of a pipeline.

    Parameters
    ----------
    source : Path or Sequence[PipelineStep]
        A pipeline file, or steps that were already loaded.
    base_dir : Path, optional
        Directory relative step paths resolve against. Defaults to the
        pipeline file's directory, or the working directory for loaded
        steps.
    session : requests.Session, optional
        Session shared by network tasks.
    on_step : callable, optional
        Called with each :class:`StepResult` as soon as its step finishes.

    Returns
    -------
    PipelineResult
        Results of the executed steps. Steps after a halting failure are
        not executed and do not appear.

    Raises
    ------
    ConfigError
        If ``source`` is a path that cannot be loaded as a pipeline.
    """
    if isinstance(source, Path):
        steps = load_pipeline(source)
        root = base_dir or source.resolve().parent
    else:
        steps = list(source)
        root = base_dir or Path.cwd()

    context = RunContext(base_dir=root, session=session)
    result = PipelineResult(total_steps=len(steps))
    for step in steps:
        label = f"[{step.index}/{len(steps)}] {step.task}"
        started = time.perf_counter()
        exit_code = EXIT_FAILURE
        try:
            outcome = execute_step(step, context)
        except STEP_ERRORS as exc:
            outcome = TaskOutcome(success=False, message=str(exc) or exc.__class__.__name__)
            exit_code = exit_code_for(exc)
        record = StepResult(
            index=step.index,
            task=step.task,
            label=label,
            success=outcome.success,
            message=outcome.message,
            duration_ms=int((time.perf_counter() - started) * 1000),
            payload=outcome.payload,
            exit_code=exit_code,
        )
        if not outcome.success and step.allow_failure:
            record.success = True
            record.allowed_failure = True
            record.message = f"allowed failure: {outcome.message}"
        result.steps.append(record)
        if on_step is not None:
            on_step(record)
        if not record.success:
            result.success = False
            break
    return result


__all__ = ["execute_step", "load_pipeline", "run_pipeline"]
