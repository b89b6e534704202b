"""Declarative static-site builder with verification, audit, and pipeline tasks.

The package turns a JSON or YAML site specification plus a theme into a
static site, checks the plan and the rendered HTML, and runs maintenance
pipelines (hosting files, Markdown hygiene, IndexNow, xref maps, artifact
cleanup) through the ``pageforge`` console script.

Exports
-------
- ``app``: Cyclopts application holding the subcommands.
- ``main``: Convenience function that invokes the app.

Examples
--------
>>> from pageforge import app
>>> app(["build", "--config", "site.json"])  # doctest: +SKIP
"""

from __future__ import annotations

from .cli import app, main

__all__ = ["app", "main"]
