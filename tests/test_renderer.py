"""Tests for rendering ChangeSets back into Markdown."""

from confdoc_sync.classifier import classify_keys
from confdoc_sync.config import REDACTED_PLACEHOLDER, SectionRule
from confdoc_sync.docmodel import parse_document
from confdoc_sync.loader import ConfigSource, load_sources
from confdoc_sync.reconciler import reconcile
from confdoc_sync.renderer import format_value, render


RULES = [
    SectionRule("Application Configuration", ("APP_", "OLD_")),
    SectionRule("Redis Configuration", ("REDIS_",)),
    SectionRule("OpenTelemetry Configuration", ("quarkus.otel.",)),
]

DOC = """\
# Service

Intro paragraph that nobody should touch.

## Application Configuration

Settings shared by every deployment.

| Name | Type | Required | Description | Example |
| --- | --- | --- | --- | --- |
| `APP_NAME` | string | No | Display name, *keep this wording* | `orders` |
| `OLD_FLAG` | boolean | No | Legacy switch | `false` |
| `APP_MODE` | string | No | Run mode | `web` |

Trailing notes.
"""


def _render(sources, doc=DOC, rules=RULES, sort_added=False):
    classification = classify_keys(load_sources(sources))
    document = parse_document(doc)
    changeset = reconcile(classification, document, rules, sort_added=sort_added)
    return render(document, changeset), changeset


def _template(text):
    return ConfigSource(".env.example", "template", "env-template", text)


def _local(text):
    return ConfigSource("application-local.properties", "local", "properties", text)


def test_empty_changeset_renders_identical_document():
    output, changeset = _render([_template("APP_NAME=orders\nOLD_FLAG=false\nAPP_MODE=web\n")])
    assert changeset.is_empty
    assert output == DOC


def test_removed_row_disappears_and_rest_is_untouched():
    output, _ = _render([_template("APP_NAME=orders\nAPP_MODE=web\n")])
    assert "OLD_FLAG" not in output
    assert output == DOC.replace("| `OLD_FLAG` | boolean | No | Legacy switch | `false` |\n", "")


def test_updated_row_rewrites_only_changed_cells():
    output, _ = _render([_template("APP_NAME=orders\nOLD_FLAG=false\nAPP_MODE=worker\n")])
    assert "| `APP_MODE` | string | No | Run mode | `worker` |\n" in output
    assert "| `APP_NAME` | string | No | Display name, *keep this wording* | `orders` |\n" in output


def test_added_row_appended_to_existing_table():
    output, _ = _render([_template("APP_NAME=orders\nOLD_FLAG=false\nAPP_MODE=web\n# Worker threads\nAPP_THREADS=4\n")])
    expected_row = "| `APP_THREADS` | integer | No | Worker threads | `4` |\n"
    assert expected_row in output
    lines = output.splitlines(keepends=True)
    assert lines[lines.index(expected_row) - 1].startswith("| `APP_MODE`")


def test_new_section_appended_at_end_with_table():
    output, _ = _render([_template("APP_NAME=orders\nOLD_FLAG=false\nAPP_MODE=web\nREDIS_HOST=\n")])
    assert output.startswith(DOC)
    tail = output[len(DOC):]
    assert tail.startswith("\n## Redis Configuration\n\n| Name | Type | Required | Description | Example |\n")
    assert "| `REDIS_HOST` | string | Yes |  |  |\n" in tail


def test_added_rows_sorted_when_requested():
    sources = [_template("APP_NAME=orders\nOLD_FLAG=false\nAPP_MODE=web\nAPP_ZONE=eu\nAPP_AREA=north\n")]
    output, _ = _render(sources, sort_added=True)
    assert output.index("`APP_AREA`") < output.index("`APP_ZONE`")
    output, _ = _render(sources)
    assert output.index("`APP_ZONE`") < output.index("`APP_AREA`")


def test_secret_values_are_never_rendered():
    sources = [_template("APP_NAME=orders\nOLD_FLAG=false\nAPP_MODE=web\nREDIS_PASSWORD=hunter2\n"), _local("REDIS_PASSWORD=devpass\n")]
    output, _ = _render(sources)
    assert "hunter2" not in output
    assert "devpass" not in output
    assert f"`{REDACTED_PLACEHOLDER}`" in output


def test_added_row_follows_table_column_order():
    doc = "## Redis Configuration\n\n| Example | Name |\n| --- | --- |\n"
    output, _ = _render([_template("REDIS_PORT=6379\n")], doc=doc)
    assert output.endswith("| `6379` | `REDIS_PORT` |\n")


def test_section_without_table_gets_one():
    doc = "## Redis Configuration\n\nPlain prose only."
    output, _ = _render([_template("REDIS_PORT=6379\n")], doc=doc)
    assert output.startswith("## Redis Configuration\n\nPlain prose only.\n\n| Name | Type |")


def test_environment_view_inserted_after_main_table():
    doc = (
        "## OpenTelemetry Configuration\n\n"
        "| Name | Type | Required | Example |\n| --- | --- | --- | --- |\n"
        "| `quarkus.otel.traces.sampler.arg` | string | Yes | (varies by environment) |\n"
        "\nMore prose.\n"
    )
    sources = [
        _local("quarkus.otel.traces.sampler.arg=1.0\n"),
        ConfigSource("application-prod.properties", "prod", "properties", "quarkus.otel.traces.sampler.arg=0.1\n"),
    ]
    output, _ = _render(sources, doc=doc)
    assert "<!-- confdoc-sync:env-differences -->\n" in output
    assert "| Name | default | local | prod |\n" in output
    assert "| `quarkus.otel.traces.sampler.arg` | (unset) | `1.0` | `0.1` |\n" in output
    assert output.index("<!-- /confdoc-sync:env-differences -->") < output.index("More prose.")
    assert output.endswith("\nMore prose.\n")


def test_crlf_documents_keep_crlf():
    doc = "## Application Configuration\r\n\r\n| Name | Type |\r\n| --- | --- |\r\n| `APP_NAME` | string |\r\n"
    output, _ = _render([_template("APP_NAME=x\nAPP_PORT=8080\n")], doc=doc)
    assert output == doc + "| `APP_PORT` | integer |\r\n"


def test_format_value_leaves_placeholders_plain():
    assert format_value("(varies by environment)") == "(varies by environment)"
    assert format_value("") == ""
    assert format_value("a|b") == "`a\\|b`"


def test_table_without_outer_pipes_keeps_its_style():
    doc = "## Redis Configuration\n\nName | Type\n--- | ---\n`REDIS_HOST` | string\n`REDIS_OLD` | string\n"
    output, changeset = _render([_template("REDIS_HOST=\nREDIS_PORT=6379\n")], doc=doc)
    assert changeset.summary()["added"] == 1
    assert changeset.summary()["removed"] == 1
    assert output == "## Redis Configuration\n\nName | Type\n--- | ---\n`REDIS_HOST` | string\n`REDIS_PORT` | integer\n"
