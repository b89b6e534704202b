"""Verification of planned sites and auditing of built output."""

from .audit import audit_site
from .models import CheckOptions, CheckResult, Issue, finalize, issue_code, write_summary
from .verify import VERIFY_FAIL_CATEGORIES, default_verify_options, verify_site

__all__ = [
    "VERIFY_FAIL_CATEGORIES",
    "CheckOptions",
    "CheckResult",
    "Issue",
    "audit_site",
    "default_verify_options",
    "finalize",
    "issue_code",
    "verify_site",
    "write_summary",
]
