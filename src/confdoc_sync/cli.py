"""CLI app definition and command registration."""

import json
import os
import sys
from typing import Annotated, Optional

import typer

from confdoc_sync.config import DEFAULT_SECTION_RULES, SectionRule, SyncOptions
from confdoc_sync.errors import ConfdocSyncError
from confdoc_sync.inputs import (
    discover_sources,
    parse_rules_file,
    parse_section_option,
    parse_source_option,
    read_source,
)
from confdoc_sync.sync import SyncResult, synchronize
from confdoc_sync.utils import console, err_console, log, read_text, set_log_file, write_text
from confdoc_sync.version import get_version

_EXIT_DRIFT = 1
_EXIT_ERROR = 2


def _version_callback(value: bool):
    if value:
        console.print(get_version())
        raise typer.Exit()


app = typer.Typer(
    help="Keep configuration reference docs in sync with properties files and env templates.",
    no_args_is_help=True,
)


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit.", callback=_version_callback, is_eager=True),
    ] = False,
) -> None:
    """Configuration documentation synchronizer."""


# ============================================
# Input assembly
# ============================================


def _resolve_rules(sections: list[str], rules_file: str | None) -> list[SectionRule]:
    """Caller-supplied rules win; the built-in Quarkus rules apply only when none are given."""
    rules: list[SectionRule] = []
    try:
        if rules_file:
            rules.extend(parse_rules_file(read_text(rules_file)))
        rules.extend(parse_section_option(value) for value in sections)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return rules or list(DEFAULT_SECTION_RULES)


def _run(
    doc: str,
    sources: list[str],
    project: str | None,
    sections: list[str],
    rules_file: str | None,
    sort: bool,
    log_file: str | None,
) -> SyncResult:
    """Read every input, run the pipeline and return its result.

    Exits with code 2 on unreadable or malformed inputs; nothing is written.
    """
    set_log_file(log_file)
    try:
        pairs = [parse_source_option(value) for value in sources]
        if project:
            pairs = discover_sources(project) + pairs
        if not pairs:
            raise ConfdocSyncError("no configuration sources given (use --source TAG=PATH or --project DIR)")
        for tag, path in pairs:
            log("cli", f"  {tag:<9} {path}", style="dim")
        loaded = [read_source(path, tag) for tag, path in pairs]
        document_text = read_text(doc) if os.path.exists(doc) else ""
        rules = _resolve_rules(sections, rules_file)
        return synchronize(loaded, document_text, rules, SyncOptions(sort_added=sort))
    except (ConfdocSyncError, OSError) as exc:
        err_console.print(f"ERROR: {exc}", style="bold red")
        raise typer.Exit(_EXIT_ERROR) from exc


# ============================================
# Reporting
# ============================================


def summary_payload(result: SyncResult) -> dict:
    """Machine-readable summary: counts plus the names behind each count."""
    changeset = result.changeset
    return {
        "summary": result.summary(),
        "changed": result.changed,
        "sections": [
            {
                "title": changes.title,
                "new": not changes.exists,
                "added": [key.name for key in changes.to_add],
                "removed": [entry.name for entry in changes.to_remove],
                "updated": [
                    {
                        "name": update.name,
                        "fields": {d.field: {"old": d.old, "new": d.new} for d in update.diffs},
                    }
                    for update in changes.to_update
                ],
                "intentionally_undocumented": [e.name for e in changes.intentionally_undocumented],
                "env_view": changes.env_view is not None,
            }
            for changes in changeset.sections
            if not changes.is_empty or changes.intentionally_undocumented
        ],
        "unmapped": [
            {"name": item.key.name, "candidates": list(item.candidates)} for item in changeset.unmapped
        ],
        "unrecognized_tables": [str(exc) for exc in changeset.unrecognized_tables],
        "warnings": [str(w) for w in changeset.secret_warnings],
    }


def print_summary(result: SyncResult) -> None:
    """Print the change summary for a human reviewer (to stderr)."""
    changeset = result.changeset
    counts = result.summary()
    err_console.print()
    err_console.print("=== CHANGES ===", style="bold cyan")
    err_console.print(
        f"  {counts['added']} added, {counts['removed']} removed, {counts['updated']} updated, "
        f"{counts['unchanged']} unchanged"
    )
    for changes in changeset.sections:
        if changes.is_empty and not changes.intentionally_undocumented:
            continue
        label = f"{changes.title or '<preamble>'}" + ("" if changes.exists else " (new section)")
        err_console.print(f"  {label}", style="bold")
        for key in changes.to_add:
            err_console.print(f"    + {key.name}", style="green")
        for entry in changes.to_remove:
            err_console.print(f"    - {entry.name}", style="red")
        for update in changes.to_update:
            fields = ", ".join(f"{d.field}: {d.old!r} -> {d.new!r}" for d in update.diffs)
            err_console.print(f"    ~ {update.name} ({fields})", style="yellow")
        for entry in changes.intentionally_undocumented:
            err_console.print(f"    = {entry.name} (documentation-only, kept)", style="dim")
        if changes.env_view is not None:
            err_console.print("    ~ differences by environment", style="yellow")

    if changeset.unmapped:
        err_console.print("=== UNMAPPED ===", style="bold yellow")
        for item in changeset.unmapped:
            err_console.print(f"  ? {item.key.name} (matches: {', '.join(item.candidates)})")
    if changeset.unrecognized_tables:
        err_console.print("=== UNRECOGNIZED TABLES (kept verbatim) ===", style="bold yellow")
        for exc in changeset.unrecognized_tables:
            err_console.print(f"  {exc}")
    if changeset.secret_warnings:
        err_console.print("=== SECRETS (redacted) ===", style="bold magenta")
        for warning in changeset.secret_warnings:
            err_console.print(f"  {warning}")
    err_console.print()


# ============================================
# Commands
# ============================================

SourceOpt = Annotated[list[str], typer.Option("--source", "-s", help="Configuration source as TAG=PATH (repeatable).")]
ProjectOpt = Annotated[Optional[str], typer.Option("--project", "-p", help="Discover sources in a project directory.")]
SectionOpt = Annotated[list[str], typer.Option("--section", help="Section rule as 'Title=prefix,prefix' (repeatable).")]
RulesFileOpt = Annotated[Optional[str], typer.Option("--rules-file", help="File of 'Title: prefix, prefix' lines.")]
SortOpt = Annotated[bool, typer.Option("--sort", help="Sort added rows alphabetically.")]
LogFileOpt = Annotated[Optional[str], typer.Option("--log-file", help="Also append log messages to this file.")]


@app.command()
def sync(
    doc: Annotated[str, typer.Argument(help="Markdown document to update.")],
    source: SourceOpt = [],
    project: ProjectOpt = None,
    section: SectionOpt = [],
    rules_file: RulesFileOpt = None,
    sort: SortOpt = False,
    write: Annotated[bool, typer.Option("--write", help="Overwrite DOC instead of printing the result.")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print the summary as JSON instead of the document.")] = False,
    log_file: LogFileOpt = None,
) -> None:
    """Reconcile DOC against the configuration sources and print or write the result."""
    result = _run(doc, source, project, section, rules_file, sort, log_file)
    print_summary(result)

    if write:
        if result.changed:
            write_text(doc, result.document)
            log("cli", f"Updated {doc}", style="green")
        else:
            log("cli", f"{doc} is already up to date", style="green")
    if as_json:
        sys.stdout.write(json.dumps(summary_payload(result), indent=2) + "\n")
    elif not write:
        sys.stdout.write(result.document)


@app.command()
def check(
    doc: Annotated[str, typer.Argument(help="Markdown document to verify.")],
    source: SourceOpt = [],
    project: ProjectOpt = None,
    section: SectionOpt = [],
    rules_file: RulesFileOpt = None,
    log_file: LogFileOpt = None,
) -> None:
    """Exit 1 when DOC is out of sync with the configuration sources."""
    result = _run(doc, source, project, section, rules_file, False, log_file)
    print_summary(result)
    if not result.changeset.is_empty:
        log("cli", f"{doc} is out of sync. Run 'confdoc-sync sync --write' to update it.", style="bold red")
        raise typer.Exit(_EXIT_DRIFT)
    log("cli", f"{doc} is in sync", style="green")


@app.command()
def discover(
    directory: Annotated[str, typer.Argument(help="Project directory to scan.")] = ".",
) -> None:
    """List the configuration sources found in a project directory."""
    found = discover_sources(directory)
    if not found:
        console.print("No configuration sources found.", style="yellow")
        return
    for tag, path in found:
        console.print(f"  {tag:<9} {path}")
