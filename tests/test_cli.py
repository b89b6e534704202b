"""Tests for the pageforge command-line entrypoint."""

from __future__ import annotations

import typing as typ
from pathlib import Path

import pytest

from pageforge import cli
from pageforge.errors import (
    BuildIoError,
    ConfigError,
    NetworkError,
    PlanError,
    TaskOptionError,
)

from .conftest import SiteFactory, write_json

if typ.TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (ConfigError("bad"), 2),
        (PlanError("bad"), 3),
        (TaskOptionError("bad"), 4),
        (NetworkError("bad"), 5),
        (BuildIoError("bad"), 1),
    ],
)
def test_exit_codes(error: Exception, code: int) -> None:
    """Each error family maps to its documented exit code."""
    assert cli.exit_code_for(error) == code


def test_build_prints_the_summary(
    make_site: SiteFactory, capsys: pytest.CaptureFixture[str]
) -> None:
    """A successful build reports the output directory and counts."""
    config = make_site()
    out = config.parent / "_site"

    cli.build(config=config, out=out, clean=True)

    lines = capsys.readouterr().out.splitlines()
    assert lines[-1].startswith("build ok: pages=2;"), lines
    assert (out / "docs" / "intro" / "index.html").is_file()


def test_missing_config_exits_with_config_code(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """Configuration errors exit 2 and print to stderr."""
    with pytest.raises(SystemExit) as excinfo:
        cli.build(config=tmp_path / "missing.json", out=tmp_path / "_site")

    assert excinfo.value.code == 2
    assert capsys.readouterr().err.startswith("error: Configuration file")


def test_missing_theme_exits_with_plan_code(make_site: SiteFactory) -> None:
    """Planning errors exit 3."""
    config = make_site(spec={"defaultTheme": "missing"})

    with pytest.raises(SystemExit) as excinfo:
        cli.build(config=config, out=config.parent / "_site")

    assert excinfo.value.code == 3


def test_verify_reports_issues_and_gates(
    make_site: SiteFactory, capsys: pytest.CaptureFixture[str]
) -> None:
    """A failing verify lists its issues and exits 1."""
    config = make_site(spec={"defaultTheme": "missing"})

    with pytest.raises(SystemExit) as excinfo:
        cli.verify(config=config)

    output = capsys.readouterr().out
    assert excinfo.value.code == 1
    assert "error: [VERIFY.THEME.PLAN_FAILED]" in output
    assert "verify failed: pages=0;" in output


def test_verify_passes_quietly(
    make_site: SiteFactory, capsys: pytest.CaptureFixture[str]
) -> None:
    """A clean site prints only the summary."""
    cli.verify(config=make_site())

    assert capsys.readouterr().out == (
        "verify ok: pages=2; warnings=0; errors=0; suppressed=0\n"
    )


def test_audit_missing_root_exits_with_config_code(tmp_path: Path) -> None:
    """Auditing a directory that does not exist is a configuration error."""
    with pytest.raises(SystemExit) as excinfo:
        cli.audit(site_root=tmp_path / "nowhere")

    assert excinfo.value.code == 2


def test_hosting_rejects_unknown_targets(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """Invalid task options exit 4."""
    with pytest.raises(SystemExit) as excinfo:
        cli.hosting(site_root=tmp_path, target=["heroku"])

    assert excinfo.value.code == 4
    assert "unsupported target 'heroku'" in capsys.readouterr().err


def test_pipeline_prints_each_step(
    make_site: SiteFactory, capsys: pytest.CaptureFixture[str]
) -> None:
    """Step lines are printed as they finish, then the overall status."""
    config = make_site()
    pipeline = write_json(
        config.parent / "pipeline.json",
        {
            "steps": [
                {"task": "build", "config": "site.json", "out": "_site"},
                {"task": "nope"},
            ]
        },
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.pipeline(config=pipeline)

    lines = capsys.readouterr().out.splitlines()
    assert excinfo.value.code == 4, "expected the unknown task's option-error code"
    assert lines[0].startswith("[1/2] build: ok")
    assert lines[1] == "[2/2] nope: failed - Unknown task 'nope'"
    assert lines[2] == "pipeline failed at [2/2] nope"


def test_pipeline_exits_with_the_failed_step_error_code(
    make_site: SiteFactory, capsys: pytest.CaptureFixture[str]
) -> None:
    """A step that raises exits with its error family's code, as the task would."""
    config = make_site(spec={"defaultTheme": "missing"})
    pipeline = write_json(
        config.parent / "pipeline.json",
        {"steps": [{"task": "build", "config": "site.json", "out": "_site"}]},
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.pipeline(config=pipeline)

    lines = capsys.readouterr().out.splitlines()
    assert excinfo.value.code == 3, "expected the planning error code"
    assert lines[-1] == "pipeline failed at [1/1] build"


def test_pipeline_gate_failure_exits_one(make_site: SiteFactory) -> None:
    """A step that reports failure without raising exits 1."""
    config = make_site(spec={"defaultTheme": "missing"})
    pipeline = write_json(
        config.parent / "pipeline.json",
        {"steps": [{"task": "verify", "config": "site.json"}]},
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.pipeline(config=pipeline)

    assert excinfo.value.code == 1, "expected gate failures to exit 1"


def test_pipeline_allowed_failure_exits_zero(
    make_site: SiteFactory, capsys: pytest.CaptureFixture[str]
) -> None:
    """An allowed failure keeps the run going and the command succeeds."""
    config = make_site(spec={"defaultTheme": "missing"})
    pipeline = write_json(
        config.parent / "pipeline.json",
        {
            "steps": [
                {"task": "build", "config": "site.json", "out": "_site", "allowFailure": True},
                {"task": "hosting", "siteRoot": ".", "targets": "netlify", "dryRun": True},
            ]
        },
    )

    cli.pipeline(config=pipeline)

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("[1/2] build: ok - allowed failure: "), lines
    assert lines[-1] == "pipeline ok: 2 step(s)"


def test_main_invokes_the_app(mocker: MockerFixture) -> None:
    """The console script delegates to the Cyclopts app."""
    app = mocker.patch.object(cli, "app")

    cli.main()

    app.assert_called_once_with()
