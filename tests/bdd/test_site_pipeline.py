"""Behaviour tests for running a scaffolded site's pipeline.

The feature file ``site_pipeline.feature`` writes a starter site with
``scaffold_site`` and runs its ``pipeline.json`` (build, verify, audit). The
first scenario proves the starter output is clean; the second adds a page
with a broken internal link and checks that the audit gate halts the run.

Usage
-----
Run ``pytest tests/bdd/test_site_pipeline.py -v``. Everything happens under
``tmp_path`` and no network access is needed.
"""

from __future__ import annotations

import typing as typ
from pathlib import Path

import msgspec.json as msgspec_json
import pytest
from pytest_bdd import given, parsers, scenarios, then, when

from pageforge.pipeline import PipelineResult, run_pipeline
from pageforge.scaffold import scaffold_site

FEATURE_FILE = Path(__file__).resolve().parents[2] / "features" / "site_pipeline.feature"
scenarios(FEATURE_FILE)

ScenarioState = dict[str, typ.Any]


@pytest.fixture
def scenario_state() -> ScenarioState:
    """Return a mutable dict used to share scenario state across BDD steps."""
    return {}


@given(parsers.parse('a scaffolded site named "{name}"'))
def given_scaffolded_site(tmp_path: Path, scenario_state: ScenarioState, name: str) -> None:
    """Write the starter site under ``tmp_path``.

    Parameters
    ----------
    tmp_path : Path
        Per-test temporary directory supplied by pytest.
    scenario_state : ScenarioState
        Receives the site root under ``"root"``.
    name : str
        Site name passed to the scaffold.
    """
    root = tmp_path / "site"
    scaffold_site(root, name=name, base_url="https://starter.test")
    scenario_state["root"] = root


@given(parsers.parse('a docs page linking to "{href}"'))
def given_broken_link(scenario_state: ScenarioState, href: str) -> None:
    """Add a docs page whose only link points at ``href``."""
    root = typ.cast("Path", scenario_state["root"])
    page = root / "content" / "docs" / "broken.md"
    page.write_text(
        "---\n"
        "title: Broken\n"
        "description: A page with a dead link.\n"
        "date: 2026-01-03\n"
        "---\n\n"
        f"See [the old page]({href}).\n",
        encoding="utf-8",
    )


@when("I run the site pipeline")
def when_run_pipeline(scenario_state: ScenarioState) -> None:
    """Run ``pipeline.json`` from the site root."""
    root = typ.cast("Path", scenario_state["root"])
    scenario_state["result"] = run_pipeline(root / "pipeline.json")


@then("every pipeline step succeeds")
def then_all_steps_succeed(scenario_state: ScenarioState) -> None:
    """Check that build, verify, and audit all passed."""
    result = typ.cast("PipelineResult", scenario_state["result"])
    assert result.success, (
        f"expected a clean run, got {[step.line for step in result.steps]}"
    )
    assert len(result.steps) == 3, "expected build, verify, and audit steps"


@then("the audit summary reports no errors")
def then_audit_summary_clean(scenario_state: ScenarioState) -> None:
    """Read the JSON summary the audit step writes under ``_reports``."""
    root = typ.cast("Path", scenario_state["root"])
    summary = msgspec_json.decode((root / "_reports" / "audit.json").read_bytes())
    assert summary["errorCount"] == 0, f"expected no audit errors, got {summary['issues']}"


@then(parsers.parse('the "{task}" step fails in the "{category}" category'))
def then_step_fails(scenario_state: ScenarioState, task: str, category: str) -> None:
    """Check that ``task`` was the failing step and ``category`` tripped its gate."""
    result = typ.cast("PipelineResult", scenario_state["result"])
    failed = result.failed_step
    assert failed is not None, "expected the pipeline to fail"
    assert failed.task == task, f"expected {task} to fail, got {failed.line}"
    categories = {issue["category"] for issue in failed.payload["issues"]}
    assert category in categories, f"expected a {category} issue, got {categories}"
    assert failed.message.endswith(f"fail categories: {category}."), failed.message
