"""
Report summary utilities for human-readable inspection.

Renders assessments and pipeline failures with the same level of detail:
every flag is listed with its count either way.
"""

from dataclasses import dataclass
from typing import Any

from .assessment import Assessment


@dataclass
class EndpointReport:
    """Outcome of running one pipeline: an assessment or an error message."""
    name: str
    assessment: Assessment | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.assessment is not None


def assessment_summary(assessment: Assessment) -> dict[str, Any]:
    """
    Extract a summary from an assessment.

    Args:
        assessment: A finished assessment

    Returns:
        Dict with total, passed, flagged, warning count and flag lines
    """
    summary = assessment.to_dict()
    summary.update(
        flagged=assessment.flagged,
        warnings=len(assessment.flags),
        flags=[f"{flag} (x{count})" for flag, count in assessment.flags.items()],
    )
    return summary


def format_assessment(assessment: Assessment) -> str:
    """
    Format an assessment as a headline followed by one line per flag.

    Returns:
        String like "10 scanned with 2 warnings\\n    Label used no signature (x3)"
    """
    s = assessment_summary(assessment)
    if s["warnings"]:
        headline = f"{s['total']} scanned with {s['warnings']} warnings"
    else:
        headline = f"{s['total']} scanned without warnings!"
    return "\n".join([headline] + [f"    {line}" for line in s["flags"]])


def format_report(report: EndpointReport) -> str:
    """Format a pipeline outcome as "Testing service endpoint <name>... <result>"."""
    prefix = f"Testing service endpoint {report.name}..."
    if report.assessment is not None:
        return f"{prefix} {format_assessment(report.assessment)}"
    return f"{prefix} {report.error}"
