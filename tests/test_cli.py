"""Tests for the command-line interface."""

import json

import pytest
import typer
from typer.testing import CliRunner

from confdoc_sync.cli import _resolve_rules, app, summary_payload
from confdoc_sync.config import DEFAULT_SECTION_RULES, SectionRule
from confdoc_sync.loader import ConfigSource
from confdoc_sync.sync import synchronize
from confdoc_sync.version import PACKAGE_VERSION

runner = CliRunner()

DOC = """\
# Service

## Redis Configuration

| Name | Type | Required | Description | Example |
| --- | --- | --- | --- | --- |
| `REDIS_TIMEOUT` | integer | No | Removed long ago | `5` |
"""

ROW = "| `REDIS_HOST` | string | No | Redis host name | `localhost` |"


@pytest.fixture
def project(tmp_path):
    """A doc plus an env template that adds REDIS_HOST and drops REDIS_TIMEOUT."""
    doc = tmp_path / "README.md"
    doc.write_text(DOC)
    env = tmp_path / ".env.example"
    env.write_text("# Redis host name\nREDIS_HOST=localhost\n")
    return tmp_path


def _args(project, *extra):
    return [str(project / "README.md"), "-s", f"template={project / '.env.example'}", *extra]


# --- sync ---

def test_sync_prints_document_and_leaves_file_alone(project):
    result = runner.invoke(app, ["sync", *_args(project)])
    assert result.exit_code == 0
    assert ROW in result.output
    assert (project / "README.md").read_text() == DOC


def test_sync_write_updates_the_file(project):
    result = runner.invoke(app, ["sync", *_args(project, "--write")])
    assert result.exit_code == 0
    text = (project / "README.md").read_text()
    assert ROW in text
    assert "REDIS_TIMEOUT" not in text


def test_sync_malformed_source_exits_2_and_writes_nothing(project):
    (project / ".env.example").write_text("REDIS_HOST=localhost\nthis is not an assignment\n")
    result = runner.invoke(app, ["sync", *_args(project, "--write")])
    assert result.exit_code == 2
    assert (project / "README.md").read_text() == DOC


def test_sync_without_sources_exits_2(project):
    result = runner.invoke(app, ["sync", str(project / "README.md")])
    assert result.exit_code == 2


def test_sync_unknown_source_tag_exits_2(project):
    result = runner.invoke(app, ["sync", str(project / "README.md"), "-s", f"staging={project / '.env.example'}"])
    assert result.exit_code == 2


def test_sync_bad_section_option_is_rejected(project):
    result = runner.invoke(app, ["sync", *_args(project, "--section", "no prefixes here")])
    assert result.exit_code != 0
    assert (project / "README.md").read_text() == DOC


def test_sync_missing_doc_is_created_with_write(project):
    target = project / "CONFIG.md"
    result = runner.invoke(
        app, ["sync", str(target), "-s", f"template={project / '.env.example'}", "--write"]
    )
    assert result.exit_code == 0
    assert "## Redis Configuration" in target.read_text()


def test_sync_mirrors_log_to_file(project):
    log_file = project / "logs" / "sync.log"
    result = runner.invoke(app, ["sync", *_args(project, "--log-file", str(log_file))])
    assert result.exit_code == 0
    assert "[loader]" in log_file.read_text()


# --- check ---

def test_check_exits_1_on_drift_and_0_after_write(project):
    assert runner.invoke(app, ["check", *_args(project)]).exit_code == 1
    assert runner.invoke(app, ["sync", *_args(project, "--write")]).exit_code == 0
    assert runner.invoke(app, ["check", *_args(project)]).exit_code == 0


# --- discover ---

def test_discover_lists_sources(project):
    result = runner.invoke(app, ["discover", str(project)])
    assert result.exit_code == 0
    assert "template" in result.output


def test_discover_empty_directory(tmp_path):
    result = runner.invoke(app, ["discover", str(tmp_path)])
    assert result.exit_code == 0
    assert "No configuration sources found." in result.output


def test_version_flag():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert PACKAGE_VERSION in result.output


# --- helpers ---

def test_resolve_rules_defaults_when_nothing_given():
    assert _resolve_rules([], None) == list(DEFAULT_SECTION_RULES)


def test_resolve_rules_custom_rules_replace_defaults(tmp_path):
    rules_file = tmp_path / "sections.txt"
    rules_file.write_text("Cache: REDIS_\n")
    rules = _resolve_rules(["Flags=FEATURE_"], str(rules_file))
    assert rules == [SectionRule("Cache", ("REDIS_",)), SectionRule("Flags", ("FEATURE_",))]


def test_resolve_rules_bad_value_raises_bad_parameter():
    with pytest.raises(typer.BadParameter):
        _resolve_rules(["Flags="], None)


def test_summary_payload_is_json_ready():
    sources = [ConfigSource(".env.example", "template", "env-template", "# Redis host name\nREDIS_HOST=localhost\n")]
    payload = summary_payload(synchronize(sources, DOC))
    decoded = json.loads(json.dumps(payload))
    assert decoded["changed"] is True
    assert decoded["summary"]["added"] == 1
    assert decoded["summary"]["removed"] == 1
    redis = decoded["sections"][0]
    assert redis["title"] == "Redis Configuration"
    assert redis["added"] == ["REDIS_HOST"]
    assert redis["removed"] == ["REDIS_TIMEOUT"]
