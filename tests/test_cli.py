"""Tests for the CLI entrypoint."""

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from bicepdrift.aggregator import build_result
from bicepdrift.cli import main
from bicepdrift.models import DetectionReport, DetectionRun, RuleUsage
from conftest import make_resource_drift


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def template(tmp_path):
    path = tmp_path / "main.bicep"
    path.write_text("param location string = resourceGroup().location\n")
    return str(path)


def _mock_report(drifted=False, failed=None):
    if drifted:
        result = build_result(
            [make_resource_drift("Microsoft.Storage/storageAccounts", [("properties.accessTier", "Hot", "Cool")])]
        )
    else:
        result = build_result([])
    return DetectionReport(
        runs=[DetectionRun("rg-app", "main.bicep", result, RuleUsage())],
        failed_resource_groups=failed or [],
    )


def _invoke(runner, args, report):
    with patch("bicepdrift.cli.WhatIfClient"), patch("bicepdrift.cli.Detector") as mock_detector_cls:
        mock_detector = MagicMock()
        mock_detector.detect.return_value = report
        mock_detector_cls.return_value = mock_detector
        result = runner.invoke(main, args)
    return result, mock_detector_cls, mock_detector


def test_cli_no_drift_exit_0(runner, template):
    result, _, _ = _invoke(runner, ["--template-file", template, "--resource-group", "rg-app"], _mock_report())
    assert result.exit_code == 0


def test_cli_drift_exit_1(runner, template):
    result, _, _ = _invoke(
        runner, ["--template-file", template, "--resource-group", "rg-app"], _mock_report(drifted=True)
    )
    assert result.exit_code == 1


def test_cli_failed_groups_exit_2(runner, template):
    result, _, _ = _invoke(
        runner,
        ["--template-file", template, "--resource-group", "rg-app"],
        _mock_report(failed=["rg-broken"]),
    )
    assert result.exit_code == 2
    assert "rg-broken" in result.output


def test_cli_requires_template_and_group(runner):
    result = runner.invoke(main, [])
    assert result.exit_code == 2
    assert "--resource-group" in result.output


def test_cli_passes_resource_groups(runner, template):
    _, _, mock_detector = _invoke(
        runner,
        ["--template-file", template, "--resource-group", "rg-a", "--resource-group", "rg-b"],
        _mock_report(),
    )
    mock_detector.detect.assert_called_once_with(template, ["rg-a", "rg-b"])


def test_cli_passes_audit_and_concurrency(runner, template):
    _, mock_detector_cls, _ = _invoke(
        runner,
        ["--template-file", template, "--resource-group", "rg-app", "--audit", "--max-concurrent", "3"],
        _mock_report(),
    )
    kwargs = mock_detector_cls.call_args[1]
    assert kwargs["audit"] is True
    assert kwargs["max_concurrent"] == 3


def test_cli_json_format(runner, template):
    result, _, _ = _invoke(
        runner,
        ["--template-file", template, "--resource-group", "rg-app", "--format", "json"],
        _mock_report(drifted=True),
    )
    assert result.exit_code == 1
    data = json.loads(result.output)
    assert set(data) == {"hasDrift", "resourceDrifts", "detectedAt", "summary"}
    assert data["resourceDrifts"][0]["propertyDrifts"][0]["propertyPath"] == "properties.accessTier"


def test_cli_json_format_with_failed_group(runner, template):
    result, _, _ = _invoke(
        runner,
        ["--template-file", template, "--resource-group", "rg-app", "--format", "json"],
        _mock_report(drifted=True, failed=["rg-broken"]),
    )
    assert result.exit_code == 2
    assert '"resourceGroup": "rg-app"' in result.output
    assert '"failedResourceGroups": [\n    "rg-broken"\n  ]' in result.output


def test_cli_markdown_format(runner, template):
    result, _, _ = _invoke(
        runner,
        ["--template-file", template, "--resource-group", "rg-app", "--format", "markdown"],
        _mock_report(drifted=True),
    )
    assert "### rg-app" in result.output


def test_cli_redact_values(runner, template):
    result, _, _ = _invoke(
        runner,
        ["--template-file", template, "--resource-group", "rg-app", "--format", "json", "--redact-values"],
        _mock_report(drifted=True),
    )
    assert "[REDACTED]" in result.output
    assert '"Hot"' not in result.output


def test_cli_max_concurrent_capped(runner, template):
    result = runner.invoke(
        main, ["--template-file", template, "--resource-group", "rg-app", "--max-concurrent", "100"]
    )
    assert result.exit_code != 0
    assert "100 is not in the range 1<=x<=50" in result.output


def test_cli_what_if_file_end_to_end(runner, tmp_path, what_if_text):
    what_if_file = tmp_path / "what-if.json"
    what_if_file.write_text(what_if_text)
    ignore_file = tmp_path / "drift-ignore.json"
    ignore_file.write_text(
        json.dumps({"ignorePatterns": {"globalPatterns": [{"propertyPattern": "properties.*Time*"}]}})
    )

    result = runner.invoke(
        main,
        [
            "--what-if-file",
            str(what_if_file),
            "--ignore-config",
            str(ignore_file),
            "--format",
            "markdown",
            "--simple-output",
        ],
    )

    assert result.exit_code == 1
    assert "properties.accessTier" in result.output
    assert "properties.subnets.0.properties.addressPrefix" in result.output
    assert "properties.creationTime" not in result.output


def test_cli_audit_reports_unused_rules(runner, tmp_path, what_if_text):
    what_if_file = tmp_path / "what-if.json"
    what_if_file.write_text(what_if_text)
    ignore_file = tmp_path / "drift-ignore.json"
    ignore_file.write_text(
        json.dumps(
            {
                "ignorePatterns": {
                    "globalPatterns": [
                        {"propertyPattern": "properties.*Time*", "reason": "timestamps"},
                        {"propertyPattern": "etag", "reason": "etags"},
                    ]
                }
            }
        )
    )

    result = runner.invoke(
        main,
        ["--what-if-file", str(what_if_file), "--ignore-config", str(ignore_file), "--audit"],
    )

    assert "Unused ignore rules" in result.output
    assert "global:etag" in result.output


def test_cli_simple_output_from_env(runner, tmp_path, what_if_text, monkeypatch):
    monkeypatch.setenv("SIMPLE_OUTPUT", "True")
    what_if_file = tmp_path / "what-if.json"
    what_if_file.write_text(what_if_text)

    result = runner.invoke(main, ["--what-if-file", str(what_if_file), "--format", "markdown"])

    assert "[CHANGED] Modified" in result.output


@patch("bicepdrift.cli.post_to_slack")
def test_cli_post_slack(mock_slack, runner, template, monkeypatch):
    monkeypatch.setenv("BICEPDRIFT_SLACK_WEBHOOK", "https://hooks.slack.com/services/T00/B00/xxx")
    _invoke(
        runner,
        ["--template-file", template, "--resource-group", "rg-app", "--post-slack"],
        _mock_report(drifted=True),
    )
    mock_slack.assert_called_once()


def test_cli_post_slack_without_webhook(runner, template, monkeypatch):
    monkeypatch.delenv("BICEPDRIFT_SLACK_WEBHOOK", raising=False)
    result, _, _ = _invoke(
        runner,
        ["--template-file", template, "--resource-group", "rg-app", "--post-slack"],
        _mock_report(drifted=True),
    )
    assert result.exit_code == 2
    assert "BICEPDRIFT_SLACK_WEBHOOK" in result.output


@patch("bicepdrift.cli.create_github_issue")
def test_cli_create_github_issue(mock_issue, runner, template, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "test-token-not-real")
    monkeypatch.setenv("GITHUB_REPO", "owner/infra")
    _invoke(
        runner,
        ["--template-file", template, "--resource-group", "rg-app", "--create-github-issue", "prod"],
        _mock_report(drifted=True),
    )
    mock_issue.assert_called_once()
    issue = mock_issue.call_args[0][0]
    assert issue["labels"] == ["drift-alert", "prod", "needs-review"]
    assert mock_issue.call_args[1]["repo"] == "owner/infra"


@patch("bicepdrift.cli.create_github_issue")
def test_cli_skips_issue_without_drift(mock_issue, runner, template, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "test-token-not-real")
    monkeypatch.setenv("GITHUB_REPO", "owner/infra")
    _invoke(
        runner,
        ["--template-file", template, "--resource-group", "rg-app", "--create-github-issue", "prod"],
        _mock_report(),
    )
    mock_issue.assert_not_called()


@patch("bicepdrift.cli.post_to_github_pr")
def test_cli_post_github_pr(mock_gh, runner, template, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "test-token-not-real")
    monkeypatch.setenv("GITHUB_REPO", "owner/infra")
    _invoke(
        runner,
        ["--template-file", template, "--resource-group", "rg-app", "--post-github-pr", "42"],
        _mock_report(drifted=True),
    )
    mock_gh.assert_called_once()
    assert mock_gh.call_args[1]["pr_number"] == 42
