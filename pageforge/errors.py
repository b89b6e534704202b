"""Exception hierarchy shared by the planner, builder, checks, and pipeline.

Each failure class maps to one stage of a site run so callers can decide
whether to abort the whole run (configuration), only the current step
(planning, building, task options), or merely record a warning (content
parsing).

Examples
--------
>>> from pageforge.errors import PlanError, ThemeCycleError
>>> issubclass(ThemeCycleError, PlanError)
True
"""

from __future__ import annotations


class PageforgeError(Exception):
    """Base class for every error raised deliberately by pageforge."""


class ConfigError(PageforgeError, ValueError):
    """Raised when a site specification or pipeline file is malformed."""


class PlanError(PageforgeError, RuntimeError):
    """Raised when the planner cannot resolve themes, content, or versioning."""


class ThemeNotFoundError(PlanError):
    """Raised when a theme directory has no manifest."""


class ThemeCycleError(PlanError):
    """Raised when a theme ``extends`` chain revisits a theme."""


class ThemeSchemaError(PlanError):
    """Raised when a theme manifest declares an unsupported schema version."""


class LayoutNotFoundError(PlanError):
    """Raised when a layout or partial is missing from the whole theme chain."""


class EmptyCollectionError(PlanError):
    """Raised when a required collection resolves no content files."""


class ContentParseError(PageforgeError, ValueError):
    """Raised for a single content file whose front matter cannot be parsed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class BuildIoError(PageforgeError, RuntimeError):
    """Raised when the builder fails to render or write output."""


class TaskOptionError(PageforgeError, ValueError):
    """Raised when a pipeline step is missing or has invalid options."""


class StrictHostingMissingError(TaskOptionError):
    """Raised when strict hosting selection finds selected files missing."""


class NetworkError(PageforgeError, RuntimeError):
    """Raised when a network task exhausts its retries."""


EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_PLAN = 3
EXIT_TASK_OPTIONS = 4
EXIT_NETWORK = 5


def exit_code_for(exc: BaseException) -> int:
    """Return the process exit code for an error raised by a command or step."""
    match exc:
        case ConfigError():
            return EXIT_CONFIG
        case PlanError():
            return EXIT_PLAN
        case TaskOptionError():
            return EXIT_TASK_OPTIONS
        case NetworkError():
            return EXIT_NETWORK
        case _:
            return EXIT_FAILURE


__all__ = [
    "EXIT_CONFIG",
    "EXIT_FAILURE",
    "EXIT_NETWORK",
    "EXIT_PLAN",
    "EXIT_TASK_OPTIONS",
    "BuildIoError",
    "ConfigError",
    "ContentParseError",
    "EmptyCollectionError",
    "LayoutNotFoundError",
    "NetworkError",
    "PageforgeError",
    "PlanError",
    "StrictHostingMissingError",
    "TaskOptionError",
    "ThemeCycleError",
    "ThemeNotFoundError",
    "ThemeSchemaError",
    "exit_code_for",
]
