"""CLI entrypoint for bicepdrift."""

import logging
import os
import sys
from pathlib import Path

import click

from bicepdrift.aggregator import merge_usage
from bicepdrift.azure.client import WhatIfClient
from bicepdrift.detector import Detector
from bicepdrift.formatter import format_html, format_json, format_markdown, format_table
from bicepdrift.ignore import DEFAULT_CONFIG_NAME, IgnoreRuleSet, load_ignore_config
from bicepdrift.integrations.github import build_drift_issue, create_github_issue, post_to_github_pr
from bicepdrift.integrations.slack import post_to_slack
from bicepdrift.logging_config import configure_logging
from bicepdrift.models import DetectionReport

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _workflow_run_url() -> str | None:
    server = os.environ.get("GITHUB_SERVER_URL")
    repository = os.environ.get("GITHUB_REPOSITORY")
    run_id = os.environ.get("GITHUB_RUN_ID")
    if server and repository and run_id:
        return f"{server}/{repository}/actions/runs/{run_id}"
    return None


@click.command()
@click.option(
    "--template-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Bicep/ARM template or .bicepparam file.",
)
@click.option(
    "--resource-group",
    "resource_groups",
    multiple=True,
    help="Resource group(s) to check against the template.",
)
@click.option(
    "--what-if-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Analyze saved what-if JSON instead of calling the Azure CLI.",
)
@click.option(
    "--ignore-config",
    type=click.Path(dir_okay=False),
    default=None,
    help=f"Ignore-rule JSON file (default: ./{DEFAULT_CONFIG_NAME} if present).",
)
@click.option("--audit", is_flag=True, help="Log suppression reasons and report unused rules.")
@click.option(
    "--simple-output",
    is_flag=True,
    envvar="SIMPLE_OUTPUT",
    help="Use plain text labels instead of emoji.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json", "markdown", "html"]),
    default="table",
    help="Output format.",
)
@click.option("--redact-values", is_flag=True, help="Hide expected and actual values.")
@click.option("--post-slack", is_flag=True, help="Post report to Slack webhook.")
@click.option(
    "--create-github-issue",
    "issue_environment",
    default=None,
    metavar="ENVIRONMENT",
    help="Open a GitHub issue labelled with ENVIRONMENT when drift is found.",
)
@click.option("--post-github-pr", type=int, default=None, help="Post report as GitHub PR comment.")
@click.option(
    "--max-concurrent",
    type=click.IntRange(1, 50),
    default=5,
    help="Max concurrent what-if runs.",
)
@click.option("--az-path", default="az", envvar="AZ_PATH", help="Azure CLI executable.")
@click.option("--timeout", type=float, default=600, help="Seconds allowed per what-if run.")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    help="Logging level for diagnostics on stderr.",
)
def main(
    template_file,
    resource_groups,
    what_if_file,
    ignore_config,
    audit,
    simple_output,
    output_format,
    redact_values,
    post_slack,
    issue_environment,
    post_github_pr,
    max_concurrent,
    az_path,
    timeout,
    log_level,
):
    """Detect configuration drift between a Bicep template and Azure."""
    level = log_level.upper()
    if audit and getattr(logging, level) > logging.INFO:
        level = "INFO"
    configure_logging(level, simple=simple_output)

    if what_if_file is None and (template_file is None or not resource_groups):
        raise click.UsageError(
            "--template-file and at least one --resource-group are required "
            "unless --what-if-file is given."
        )

    if ignore_config or Path(DEFAULT_CONFIG_NAME).exists():
        rules = load_ignore_config(ignore_config)
    else:
        rules = IgnoreRuleSet()

    client = WhatIfClient(az_path=az_path, timeout=timeout)
    detector = Detector(client, rules=rules, audit=audit, max_concurrent=max_concurrent)

    if what_if_file is not None:
        run = detector.analyze(
            Path(what_if_file).read_text(encoding="utf-8"),
            resource_group=resource_groups[0] if resource_groups else "",
            template_file=template_file or what_if_file,
        )
        report = DetectionReport(runs=[run], failed_resource_groups=[])
    else:
        report = detector.detect(template_file, list(resource_groups))

    unused_rules = None
    if audit:
        usage = merge_usage(run.rule_usage for run in report.runs)
        unused_rules = usage.unused_rules(rules.rule_ids())

    if output_format == "json":
        output = format_json(report, redact=redact_values, unused_rules=unused_rules)
    elif output_format == "markdown":
        output = format_markdown(report, redact=redact_values, simple=simple_output)
    elif output_format == "html":
        output = format_html(report, redact=redact_values)
    else:
        output = format_table(
            report, redact=redact_values, simple=simple_output, unused_rules=unused_rules
        )
    click.echo(output)

    if report.failed_resource_groups:
        click.echo(
            f"Error: drift detection failed for: {', '.join(report.failed_resource_groups)}",
            err=True,
        )

    if post_slack:
        webhook_url = os.environ.get("BICEPDRIFT_SLACK_WEBHOOK")
        if not webhook_url:
            click.echo("Error: BICEPDRIFT_SLACK_WEBHOOK env var not set.", err=True)
            sys.exit(2)
        md_output = format_markdown(report, redact=redact_values, simple=True)
        post_to_slack(report=md_output, webhook_url=webhook_url)

    if issue_environment is not None or post_github_pr is not None:
        token = os.environ.get("GITHUB_TOKEN")
        repo = os.environ.get("GITHUB_REPO")
        if not token or not repo:
            click.echo("Error: GITHUB_TOKEN and GITHUB_REPO env vars required.", err=True)
            sys.exit(2)
        if issue_environment is not None and report.has_drift:
            issue = build_drift_issue(
                report, issue_environment, _workflow_run_url(), redact=redact_values
            )
            create_github_issue(issue, repo=repo, token=token)
        if post_github_pr is not None:
            md_output = format_markdown(report, redact=redact_values)
            post_to_github_pr(body=md_output, repo=repo, pr_number=post_github_pr, token=token)

    if report.failed_resource_groups:
        sys.exit(2)
    sys.exit(1 if report.has_drift else 0)
