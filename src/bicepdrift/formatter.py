"""Output formatters for drift detection results."""

import html
import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.text import Text
from rich.tree import Tree

from bicepdrift.aggregator import build_result
from bicepdrift.models import DetectionReport, DriftDetectionResult, DriftType

DRIFT_STYLES = {
    DriftType.MISSING: "red",
    DriftType.EXTRA: "cyan",
    DriftType.MODIFIED: "yellow",
    DriftType.ADDED: "magenta",
}

# (emoji, plain) label pairs; plain labels are used with simple output.
DRIFT_LABELS = {
    DriftType.MISSING: ("❌", "[MISSING]"),
    DriftType.EXTRA: ("➕", "[EXTRA]"),
    DriftType.MODIFIED: ("🔄", "[CHANGED]"),
    DriftType.ADDED: ("🆕", "[ADDED]"),
}

REDACTED = "[REDACTED]"
MAX_VALUE_WIDTH = 80


def _label(drift_type: DriftType, simple: bool) -> str:
    emoji, plain = DRIFT_LABELS.get(drift_type, ("❓", "[UNKNOWN]"))
    return plain if simple else emoji


def _shorten(value: str) -> str:
    if len(value) > MAX_VALUE_WIDTH:
        return value[: MAX_VALUE_WIDTH - 3] + "..."
    return value


def _escape_md_cell(value: str) -> str:
    """Escape characters that break markdown table cells."""
    return value.replace("|", "\\|").replace("\n", " ")


def result_to_dict(result: DriftDetectionResult, *, redact: bool = False) -> dict[str, Any]:
    """Serialize a result in the published JSON report shape."""
    return {
        "hasDrift": result.has_drift,
        "resourceDrifts": [
            {
                "resourceType": rd.resource_type,
                "resourceName": rd.resource_name,
                "resourceId": rd.resource_id,
                "propertyDrifts": [
                    {
                        "propertyPath": pd.property_path,
                        "expectedValue": REDACTED if redact else pd.expected_value,
                        "actualValue": REDACTED if redact else pd.actual_value,
                        "type": pd.drift_type.value,
                    }
                    for pd in rd.property_drifts
                ],
            }
            for rd in result.resource_drifts
        ],
        "detectedAt": result.detected_at.isoformat(),
        "summary": result.summary,
    }


def format_json(
    report: DetectionReport,
    *,
    redact: bool = False,
    unused_rules: list[str] | None = None,
) -> str:
    """Format results as JSON.

    The top level is always a drift report document. A single successful run
    is emitted as-is; otherwise drift from every group is combined and the
    per-group documents are listed under ``resourceGroups``.
    """
    if len(report.runs) == 1 and not report.failed_resource_groups:
        data = result_to_dict(report.runs[0].result, redact=redact)
    else:
        combined = build_result(
            (rd for run in report.runs for rd in run.result.resource_drifts),
            ignored_count=sum(run.result.ignored_count for run in report.runs),
            detected_at=report.detected_at,
        )
        data = result_to_dict(combined, redact=redact)
        data["resourceGroups"] = [
            {
                "resourceGroup": run.resource_group,
                "templateFile": run.template_file,
                **result_to_dict(run.result, redact=redact),
            }
            for run in report.runs
        ]
        data["failedResourceGroups"] = list(report.failed_resource_groups)
    if unused_rules is not None:
        data["unusedRules"] = list(unused_rules)
    return json.dumps(data, indent=2)


def format_markdown(report: DetectionReport, *, redact: bool = False, simple: bool = False) -> str:
    """Format results as Markdown."""
    drifted = [run for run in report.runs if run.result.has_drift]
    failed = [_escape_md_cell(rg) for rg in report.failed_resource_groups]
    if not drifted and not failed:
        return "No configuration drift detected."

    lines = [
        f"## Drift Report — {len(drifted)}/{len(report.runs)} resource groups drifted",
        "",
    ]
    if failed:
        lines.append(f"**Drift detection failed for:** {', '.join(failed)}")
        lines.append("")

    for run in drifted:
        lines.append(f"### {_escape_md_cell(run.resource_group or run.template_file)}")
        lines.append("")
        lines.append(run.result.summary)
        lines.append("")
        lines.append("| Resource | Type | Change | Property | Expected | Actual |")
        lines.append("|----------|------|--------|----------|----------|--------|")

        for rd in run.result.resource_drifts:
            name = _escape_md_cell(rd.resource_name)
            resource_type = _escape_md_cell(rd.resource_type)
            for pd in rd.property_drifts:
                expected = REDACTED if redact else _escape_md_cell(pd.expected_value)
                actual = REDACTED if redact else _escape_md_cell(pd.actual_value)
                lines.append(
                    f"| {name} | {resource_type} | {_label(pd.drift_type, simple)} {pd.drift_type.value} "
                    f"| `{_escape_md_cell(pd.property_path)}` "
                    f"| `{expected}` | `{actual}` |"
                )

        lines.append("")

    return "\n".join(lines)


def format_table(
    report: DetectionReport,
    *,
    redact: bool = False,
    simple: bool = False,
    unused_rules: list[str] | None = None,
) -> str:
    """Format results as a Rich tree view, returned as a string."""
    if not report.runs and not report.failed_resource_groups and not unused_rules:
        return "No configuration drift detected."

    console = Console(record=True, width=120)
    tree = Tree("[bold]Drift Report[/bold]")

    for run in report.runs:
        status_style = "red" if run.result.has_drift else "green"
        group_branch = tree.add(
            Text.from_markup(
                f"[{status_style}]{escape(run.resource_group or run.template_file)}[/{status_style}]"
                f" — {escape(run.result.summary)}"
            )
        )
        for rd in run.result.resource_drifts:
            resource_branch = group_branch.add(
                Text(f"{rd.resource_type} - {rd.resource_name} ({len(rd.property_drifts)})")
            )
            for pd in rd.property_drifts:
                style = DRIFT_STYLES.get(pd.drift_type, "dim")
                expected = REDACTED if redact else _shorten(pd.expected_value)
                actual = REDACTED if redact else _shorten(pd.actual_value)
                line = Text(f"{_label(pd.drift_type, simple)} ")
                line.append(pd.property_path, style=style)
                line.append(f" ({pd.drift_type.value}): ")
                line.append(expected, style="green")
                line.append(" → ")
                line.append(actual, style="red")
                resource_branch.add(line)

    if report.failed_resource_groups:
        failed_branch = tree.add(Text("Drift detection failed", style="bold red"))
        for rg in report.failed_resource_groups:
            failed_branch.add(Text(rg, style="red"))

    if unused_rules:
        unused_branch = tree.add(Text("Unused ignore rules", style="dim"))
        for rule_id in unused_rules:
            unused_branch.add(Text(rule_id))

    console.print(tree)
    return console.export_text()


def format_html(report: DetectionReport, *, redact: bool = False) -> str:
    """Format results as a standalone HTML page."""
    sections = []
    for run in report.runs:
        result = run.result
        status_class = "drift-detected" if result.has_drift else "no-drift"
        rows = []
        for rd in result.resource_drifts:
            for pd in rd.property_drifts:
                expected = REDACTED if redact else pd.expected_value
                actual = REDACTED if redact else pd.actual_value
                rows.append(
                    f"<tr class='{pd.drift_type.value.lower()}'>"
                    f"<td>{html.escape(rd.resource_type)}</td>"
                    f"<td>{html.escape(rd.resource_name)}</td>"
                    f"<td><code>{html.escape(pd.property_path)}</code></td>"
                    f"<td>{html.escape(pd.drift_type.value)}</td>"
                    f"<td><code>{html.escape(expected)}</code></td>"
                    f"<td><code>{html.escape(actual)}</code></td></tr>"
                )
        table = ""
        if rows:
            table = (
                "<table><tr><th>Type</th><th>Resource</th><th>Property</th>"
                "<th>Change</th><th>Expected</th><th>Actual</th></tr>" + "".join(rows) + "</table>"
            )
        sections.append(
            f"<section><h2 class='{status_class}'>"
            f"{html.escape(run.resource_group or run.template_file)}</h2>"
            f"<p>{html.escape(result.summary)}</p>{table}</section>"
        )

    failed = ""
    if report.failed_resource_groups:
        items = "".join(f"<li>{html.escape(rg)}</li>" for rg in report.failed_resource_groups)
        failed = f"<h2>Failed resource groups</h2><ul>{items}</ul>"

    body = "".join(sections)
    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Azure Drift Detection Report</title>
<style>
body {{ font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; margin: 40px; }}
table {{ border-collapse: collapse; width: 100%; }}
td, th {{ border: 1px solid #dee2e6; padding: 6px; text-align: left; }}
.drift-detected {{ color: #dc3545; }}
.no-drift {{ color: #28a745; }}
.missing {{ background: #f8d7da; }}
.extra {{ background: #d1ecf1; }}
.modified {{ background: #fff3cd; }}
</style>
</head>
<body>
<h1>Azure Drift Detection Report</h1>
{body}{failed}
</body>
</html>
"""
