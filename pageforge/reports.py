"""Write task reports and Markdown summaries.

Pipeline tasks return result objects; when a step names a ``reportPath`` or
``summaryPath`` the runner hands the payload to these helpers so every task
writes files the same way.
"""

from __future__ import annotations

import json
import typing as typ

from pageforge.errors import BuildIoError

if typ.TYPE_CHECKING:
    from pathlib import Path


def write_text_file(path: Path, text: str) -> Path:
    """Write ``text`` to ``path``, creating parent directories.

    Raises
    ------
    BuildIoError
        If the file cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        msg = f"Failed to write '{path}': {exc}"
        raise BuildIoError(msg) from exc
    return path


def write_json_file(path: Path, payload: typ.Any) -> Path:
    """Write ``payload`` as indented JSON to ``path``."""
    return write_text_file(path, json.dumps(payload, indent=2, ensure_ascii=False) + "\n")


__all__ = ["write_json_file", "write_text_file"]
