"""Tests for pipeline loading, option resolution, and step execution."""

from __future__ import annotations

import json
import subprocess
import typing as typ
from pathlib import Path

import pytest
import requests

from pageforge.checks import verify as verify_module
from pageforge.errors import ConfigError, TaskOptionError
from pageforge.pipeline import PipelineStep, StepResult, load_pipeline, run_pipeline
from pageforge.pipeline.options import (
    BuildOptions,
    HostingOptions,
    XrefMergeTaskOptions,
    resolve_options,
)

from .conftest import SiteFactory, write_json, write_text

if typ.TYPE_CHECKING:
    from pytest_mock import MockerFixture


def _steps(*entries: dict[str, typ.Any]) -> list[PipelineStep]:
    return [
        PipelineStep(index=index, task=entry["task"], options=entry)
        for index, entry in enumerate(entries, start=1)
    ]


def test_options_resolve_aliases_and_paths(tmp_path: Path) -> None:
    """Aliases map onto fields and relative paths join the base directory."""
    options = resolve_options(
        HostingOptions,
        {"site-root": "public", "targets": "netlify, vercel", "dry-run": "yes"},
        tmp_path,
        task="hosting",
    )

    assert options.site_root == tmp_path / "public"
    assert options.targets == ("netlify", "vercel")
    assert options.dry_run is True
    assert options.remove_unselected is True, "expected the default to apply"


def test_paths_options_collect_every_alias(tmp_path: Path) -> None:
    """Multi-path options gather values from each alias present."""
    options = resolve_options(
        XrefMergeTaskOptions,
        {"out": "xref.json", "map": "a.json", "inputs": ["b", "c"]},
        tmp_path,
        task="xref-merge",
    )

    assert options.inputs == (tmp_path / "a.json", tmp_path / "b", tmp_path / "c")


def test_hosting_targets_union_every_alias(tmp_path: Path) -> None:
    """Targets from each alias key are combined, repeats dropped."""
    options = resolve_options(
        HostingOptions,
        {
            "siteRoot": ".",
            "target": "netlify",
            "targets": "vercel",
            "hosts": ["apache", "netlify"],
            "hostTargets": "nginx",
        },
        tmp_path,
        task="hosting",
    )

    assert options.targets == ("vercel", "netlify", "apache", "nginx"), (
        "expected every alias in table order without duplicates"
    )


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({"out": "_site"}, "build requires config."),
        ({"config": "site.json", "out": "_site", "clean": "maybe"}, "build option 'clean' must be a boolean."),
        ({"config": " ", "out": "_site"}, "build requires config."),
    ],
)
def test_option_errors(raw: dict[str, typ.Any], message: str, tmp_path: Path) -> None:
    """Missing and mistyped options raise ``TaskOptionError``."""
    with pytest.raises(TaskOptionError) as excinfo:
        resolve_options(BuildOptions, raw, tmp_path, task="build")

    assert str(excinfo.value) == message


def test_load_pipeline_validates_steps(tmp_path: Path) -> None:
    """Pipeline files need a steps array of tasks."""
    no_steps = write_json(tmp_path / "a.json", {"steps": {}})
    no_task = write_json(tmp_path / "b.json", {"steps": [{"out": "_site"}]})
    yaml_file = write_text(tmp_path / "c.yaml", "steps:\n  - task: build\n    out: _site\n")

    with pytest.raises(ConfigError, match="must include a steps array"):
        load_pipeline(no_steps)
    with pytest.raises(ConfigError, match="Pipeline step 1 must include a 'task' string."):
        load_pipeline(no_task)
    assert load_pipeline(yaml_file) == [
        PipelineStep(index=1, task="build", options={"task": "build", "out": "_site"})
    ]


def test_build_then_verify_reuses_the_plan(
    make_site: SiteFactory, mocker: MockerFixture
) -> None:
    """A verify step for the built config inspects the build's plan."""
    config = make_site()
    pipeline = write_json(
        config.parent / "pipeline.json",
        {
            "steps": [
                {"task": "build", "config": "site.json", "out": "_site", "clean": True},
                {"task": "verify", "config": "site.json"},
            ]
        },
    )
    spy = mocker.spy(verify_module, "plan_site")

    result = run_pipeline(pipeline)

    assert result.success, [step.line for step in result.steps]
    assert [step.label for step in result.steps] == ["[1/2] build", "[2/2] verify"]
    assert result.steps[1].message == (
        "verify ok: pages=2; warnings=0; errors=0; suppressed=0"
    )
    assert (config.parent / "_site" / "docs" / "index.html").is_file()
    spy.assert_not_called()


def test_failure_halts_the_run(tmp_path: Path) -> None:
    """Steps after a failing step do not run."""
    result = run_pipeline(
        _steps(
            {"task": "nope"},
            {"task": "hosting", "siteRoot": str(tmp_path), "dryRun": True},
        ),
        tmp_path,
    )

    assert not result.success
    assert len(result.steps) == 1, "expected the second step to be skipped"
    assert result.failed_step is not None
    assert result.failed_step.line == "[1/2] nope: failed - Unknown task 'nope'"
    assert result.failed_step.exit_code == 4, "expected the option-error exit code"


def test_allow_failure_continues(tmp_path: Path) -> None:
    """``allowFailure`` records the failure and keeps going."""
    seen: list[StepResult] = []

    result = run_pipeline(
        _steps(
            {"task": "nope", "allowFailure": True},
            {"task": "hosting", "siteRoot": ".", "targets": "netlify", "dryRun": True},
        ),
        tmp_path,
        on_step=seen.append,
    )

    assert result.success
    assert [step.allowed_failure for step in seen] == [True, False]
    assert seen[0].message == "allowed failure: Unknown task 'nope'"
    assert seen[1].message == (
        "hosting dry-run: targets=netlify; kept=0; removed=0; missing=1"
    )


def test_exec_step(tmp_path: Path, mocker: MockerFixture) -> None:
    """``exec`` runs in the base directory and fails on non-zero exit."""
    run = mocker.patch(
        "pageforge.commands.subprocess.run",
        return_value=subprocess.CompletedProcess(["tool"], 1, "", "boom"),
    )

    result = run_pipeline(
        _steps({"task": "exec", "command": "tool", "args": "--flag value"}), tmp_path
    )

    assert not result.success
    assert result.steps[0].message == "exec failed with exit code 1: tool --flag value: boom"
    assert result.steps[0].exit_code == 1, "expected a plain failure exit code"
    assert run.call_args.args[0] == ["tool", "--flag", "value"]
    assert run.call_args.kwargs["cwd"] == tmp_path


def test_exec_continue_on_error(tmp_path: Path, mocker: MockerFixture) -> None:
    """``continueOnError`` is the exec spelling of ``allowFailure``."""
    mocker.patch(
        "pageforge.commands.subprocess.run",
        return_value=subprocess.CompletedProcess(["tool"], 3, "", ""),
    )

    result = run_pipeline(
        _steps({"task": "exec", "command": "tool", "continueOnError": "true"}), tmp_path
    )

    assert result.success
    assert result.steps[0].allowed_failure


def test_indexnow_step_uses_the_shared_session(
    tmp_path: Path, mocker: MockerFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Network tasks post through the session handed to the runner."""
    session = mocker.Mock(spec=requests.Session)
    session.post.return_value = mocker.Mock(status_code=200, text="")
    monkeypatch.setenv("INDEXNOW_KEY", "abc")
    report = tmp_path / "reports" / "indexnow.json"

    result = run_pipeline(
        _steps(
            {
                "task": "indexnow",
                "baseUrl": "https://example.test",
                "paths": "/, /docs/",
                "retryDelayMs": 0,
                "reportPath": "reports/indexnow.json",
            }
        ),
        tmp_path,
        session=session,
    )

    assert result.success, result.steps[0].message
    assert result.steps[0].message == "indexnow: 2 urls, 1 requests, 0 failed"
    assert json.loads(report.read_text(encoding="utf-8"))["urlCount"] == 2


def test_indexnow_key_is_checked_first(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A missing key fails before URLs are read, unless the key is optional."""
    monkeypatch.delenv("INDEXNOW_KEY", raising=False)
    missing_sitemap = {"task": "indexnow", "sitemap": "nowhere/sitemap.xml"}

    failed = run_pipeline(_steps(missing_sitemap), tmp_path)
    skipped = run_pipeline(_steps({**missing_sitemap, "optionalKey": True}), tmp_path)

    assert failed.steps[0].message.startswith("indexnow: missing key")
    assert skipped.success
    assert skipped.steps[0].message.startswith("indexnow skipped: no key found")


def test_markdown_fix_fail_on_changes(tmp_path: Path) -> None:
    """``failOnChanges`` turns pending fixes into a failed step."""
    write_text(tmp_path / "docs" / "a.md", "<b>x</b>\n")

    result = run_pipeline(
        _steps({"task": "markdown-hygiene", "root": "docs", "failOnChanges": True}),
        tmp_path,
    )

    assert not result.success
    assert result.steps[0].message.endswith("failOnChanges is set and 1 file(s) need fixes")


def test_artifact_prune_requires_a_token(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Without a token the step fails before any request."""
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GH_TOKEN", raising=False)

    result = run_pipeline(_steps({"task": "artifact-prune", "repository": "octo/site"}), tmp_path)

    assert not result.success
    assert result.steps[0].message.startswith("artifact-prune requires a token")


def test_hosting_step_keeps_selected_targets(tmp_path: Path) -> None:
    """Only the files of the selected platforms survive."""
    names = [
        "_redirects",
        "staticwebapp.config.json",
        "vercel.json",
        ".htaccess",
        "nginx.redirects.conf",
        "web.config",
    ]
    for name in names:
        write_text(tmp_path / "_site" / name, "x\n")

    result = run_pipeline(
        _steps({"task": "hosting", "siteRoot": "_site", "targets": "apache,iis"}), tmp_path
    )

    assert result.success, result.steps[0].message
    assert sorted(path.name for path in (tmp_path / "_site").iterdir()) == [
        ".htaccess",
        "web.config",
    ]


def test_audit_budget_gate_and_suppression(tmp_path: Path) -> None:
    """Budget findings gate only when asked and suppression lifts the gate."""
    write_text(
        tmp_path / "_site" / "index.html",
        '<html><head><meta charset="utf-8"><title>T</title></head>'
        "<body><nav></nav></body></html>",
    )
    write_text(tmp_path / "_site" / "robots.txt", "User-agent: *\n")
    audit = {"task": "audit", "siteRoot": "_site", "maxTotalFiles": 1}

    warned = run_pipeline(_steps(audit), tmp_path)
    excluded = run_pipeline(_steps({**audit, "budgetExclude": "*.txt"}), tmp_path)
    gated = run_pipeline(_steps({**audit, "failOnCategories": "budget"}), tmp_path)
    suppressed = run_pipeline(
        _steps({**audit, "failOnCategories": "budget", "suppressIssues": "AUDIT.BUDGET"}),
        tmp_path,
    )

    assert warned.success
    assert "AUDIT.BUDGET" in {issue["code"] for issue in warned.steps[0].payload["issues"]}
    assert "AUDIT.BUDGET" not in {
        issue["code"] for issue in excluded.steps[0].payload["issues"]
    }, "expected excluded files not to count"
    assert not gated.success, "expected the budget category to gate"
    assert suppressed.success, "expected suppression to lift the gate"


def test_xref_budget_fails_with_fail_on_warnings(tmp_path: Path) -> None:
    """A breached duplicate budget names the option in the failure."""
    for name, href in (("first", "/a/"), ("second", "/b/"), ("third", "/c/")):
        write_json(tmp_path / f"{name}.json", {"references": [{"uid": "sample.uid", "href": href}]})

    result = run_pipeline(
        _steps(
            {
                "task": "xref-merge",
                "out": "_temp/xrefmap.json",
                "mapFiles": ["first.json", "second.json", "third.json"],
                "maxDuplicates": 1,
                "failOnWarnings": True,
            }
        ),
        tmp_path,
    )

    assert not result.success
    assert result.steps[0].message == (
        "Xref merge: duplicate count 2 exceeds maxDuplicates 1."
    )
