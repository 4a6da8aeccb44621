"""Raise drift reports on GitHub as issues or pull request comments."""

import re
from datetime import UTC, datetime
from typing import Any

import requests

from bicepdrift.formatter import REDACTED
from bicepdrift.models import DetectionReport, DriftType

REPO_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+/[a-zA-Z0-9._-]+$")
API_ROOT = "https://api.github.com"

DRIFT_HEADINGS = {
    DriftType.MISSING: "Missing Property",
    DriftType.EXTRA: "Extra Property",
    DriftType.MODIFIED: "Modified Property",
    DriftType.ADDED: "Added Property",
}


def _check_repo(repo: str) -> None:
    if not REPO_PATTERN.match(repo):
        raise ValueError(f"Invalid GitHub repo format: {repo!r} (expected 'owner/repo')")


def _post(url: str, payload: dict[str, Any], token: str, timeout: int) -> dict[str, Any]:
    response = requests.post(
        url,
        json=payload,
        headers={
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github.v3+json",
        },
        timeout=timeout,
    )
    response.raise_for_status()
    return response.json()


def build_drift_issue(
    report: DetectionReport,
    environment: str,
    run_url: str | None = None,
    *,
    redact: bool = False,
) -> dict[str, Any]:
    """Build the title, body and labels of a drift alert issue."""
    lines = [f"**Configuration drift detected in `{environment}` environment!**", ""]

    for run in report.runs:
        if not run.result.has_drift:
            continue
        lines.append(f"## {run.resource_group or run.template_file}")
        lines.append("")
        lines.append(run.result.summary)
        lines.append("")
        for index, rd in enumerate(run.result.resource_drifts, start=1):
            lines.append(f"### {index}. {rd.resource_type}")
            lines.append(f"**Resource Name:** `{rd.resource_name}`")
            lines.append("")
            for pd in rd.property_drifts:
                heading = DRIFT_HEADINGS.get(pd.drift_type, "Changed")
                lines.append(f"**{heading}:** `{pd.property_path}`")
                lines.append(f"- **Expected:** `{REDACTED if redact else pd.expected_value}`")
                lines.append(f"- **Actual:** `{REDACTED if redact else pd.actual_value}`")
                lines.append("")

    if report.failed_resource_groups:
        lines.append("**Failed resource groups:** " + ", ".join(report.failed_resource_groups))
        lines.append("")

    detected_at = report.detected_at or datetime.now(UTC)
    lines.append(f"**Detected at:** {detected_at.isoformat()}")
    lines.append("**Action Required:** Review and remediate the configuration drift")
    if run_url:
        lines.append(f"**[View Full Workflow Run]({run_url})**")
    lines += [
        "",
        "### Remediation Options",
        "1. **Manual Fix:** Update Azure resources to match the template",
        "2. **Template Update:** Modify the Bicep template if the current state is desired",
        "3. **Ignore Rule:** Add the property to `drift-ignore.json` if the difference is expected",
    ]

    return {
        "title": f"Configuration Drift Detected in {environment.upper()}",
        "body": "\n".join(lines),
        "labels": ["drift-alert", environment, "needs-review"],
    }


def create_github_issue(
    issue: dict[str, Any],
    repo: str,
    token: str,
    timeout: int = 30,
) -> dict[str, Any]:
    """Open an issue in ``repo`` and return the created issue payload."""
    _check_repo(repo)
    return _post(f"{API_ROOT}/repos/{repo}/issues", issue, token, timeout)


def post_to_github_pr(
    body: str,
    repo: str,
    pr_number: int,
    token: str,
    timeout: int = 30,
) -> None:
    """Post a drift report as a comment on a GitHub pull request."""
    _check_repo(repo)
    _post(f"{API_ROOT}/repos/{repo}/issues/{pr_number}/comments", {"body": body}, token, timeout)
