"""Render a ChangeSet back into Markdown.

Only the rows named by the ChangeSet are rewritten; every other line of the
parsed document is emitted exactly as it was read. Added rows go to the end
of their section's first entry table; sections the document lacks are
appended at the end.
"""

from confdoc_sync.classifier import ClassifiedKey
from confdoc_sync.config import (
    DEFAULT_TABLE_COLUMNS,
    DEFAULT_TABLE_HEADER,
    ENV_VIEW_END,
    ENV_VIEW_START,
    ENV_VIEW_TITLE,
    REDACTED_PLACEHOLDER,
    UNSET_PLACEHOLDER,
    VARIANT_PLACEHOLDER,
)
from confdoc_sync.docmodel import (
    Document,
    DocumentSection,
    EnvironmentViewBlock,
    TableBlock,
    document_lines,
    escape_cell,
)
from confdoc_sync.reconciler import ChangeSet, EntryUpdate, EnvironmentView, SectionChanges
from confdoc_sync.utils import log

_PLAIN_VALUES = {VARIANT_PLACEHOLDER, UNSET_PLACEHOLDER, ""}


# ============================================
# Cell formatting
# ============================================


def format_value(value: str) -> str:
    """Format an example value for a table cell: code span unless a placeholder."""
    if value in _PLAIN_VALUES:
        return value
    return f"`{escape_cell(value)}`"


def example_cell(key: ClassifiedKey) -> str:
    """Example cell for a key; redaction is re-applied here, whatever upstream says."""
    if key.is_secret_like:
        return format_value(REDACTED_PLACEHOLDER)
    return format_value(key.example_value)


def _field_cell(meaning: str, key: ClassifiedKey) -> str:
    if meaning == "name":
        return f"`{escape_cell(key.name)}`"
    if meaning == "type":
        return key.type
    if meaning == "required":
        return "Yes" if key.required else "No"
    if meaning == "description":
        return escape_cell(key.key.description)
    if meaning == "example":
        return example_cell(key)
    return ""


def format_row(cells: list[str], newline: str, outer: bool = True) -> str:
    """Format one table row; without outer pipes only when both edge cells are non-empty."""
    if not outer and cells and cells[0] and cells[-1]:
        return " | ".join(cells) + newline
    return "| " + " | ".join(cells) + " |" + newline


def new_row(key: ClassifiedKey, columns: dict[str, int], width: int, newline: str, outer: bool = True) -> str:
    """Row for an added key laid out according to the table's own columns."""
    cells = [""] * width
    for meaning, index in columns.items():
        cells[index] = _field_cell(meaning, key)
    return format_row(cells, newline, outer)


def updated_row(
    update: EntryUpdate, cells: tuple[str, ...], columns: dict[str, int], newline: str, outer: bool = True
) -> str:
    """Rewrite only the cells named by the update's field diffs."""
    width = max(len(cells), max(columns.values()) + 1)
    result = list(cells) + [""] * (width - len(cells))
    for diff in update.diffs:
        index = columns.get(diff.field)
        if index is not None:
            result[index] = _field_cell(diff.field, update.key)
    return format_row(result, newline, outer)


def render_environment_view(view: EnvironmentView, newline: str) -> list[str]:
    lines = [ENV_VIEW_START + newline, ENV_VIEW_TITLE + newline, newline]
    lines.append(format_row(["Name", *view.environments], newline))
    lines.append(format_row(["---"] * (len(view.environments) + 1), newline))
    for name, *values in view.rows:
        lines.append(format_row([f"`{escape_cell(name)}`", *(format_value(v) for v in values)], newline))
    lines.append(ENV_VIEW_END + newline)
    return lines


def new_table(keys: list[ClassifiedKey], newline: str) -> list[str]:
    columns = {meaning: i for i, meaning in enumerate(DEFAULT_TABLE_COLUMNS)}
    lines = [
        format_row(list(DEFAULT_TABLE_HEADER), newline),
        format_row(["---"] * len(DEFAULT_TABLE_HEADER), newline),
    ]
    lines.extend(new_row(key, columns, len(DEFAULT_TABLE_HEADER), newline) for key in keys)
    return lines


# ============================================
# Section rendering
# ============================================


def _ensure_blank_line(lines: list[str], newline: str) -> None:
    """Make sure the output so far ends with a line break followed by a blank line."""
    if not lines:
        return
    if not lines[-1].endswith(("\n", "\r")):
        lines[-1] = lines[-1] + newline
    if lines[-1].strip():
        lines.append(newline)


def _render_table(table: TableBlock, changes: SectionChanges, add_here: bool, newline: str) -> list[str]:
    removed = {entry.name for entry in changes.to_remove}
    updates = {update.name: update for update in changes.to_update}
    lines = list(table.header_lines)
    for row in table.rows:
        name = row.entry.name if row.entry is not None else None
        if name in removed:
            continue
        if name in updates:
            lines.append(updated_row(updates[name], row.cells, table.columns, newline, table.outer_pipes))
        else:
            lines.append(row.line)
    if add_here and changes.to_add:
        if lines and not lines[-1].endswith(("\n", "\r")):
            lines[-1] = lines[-1] + newline
        width = len(table.header)
        lines.extend(new_row(key, table.columns, width, newline, table.outer_pipes) for key in changes.to_add)
    return lines


def render_section(
    section: DocumentSection, changes: SectionChanges | None, newline: str, is_last: bool = True
) -> list[str]:
    """Render one existing section; untouched sections come out verbatim.

    Content appended at the end of a section that is followed by another one
    gets a trailing blank line so the next heading stays separated.
    """
    lines = [section.heading_line] if section.heading_line is not None else []
    if changes is None or changes.is_empty:
        return document_lines(section)

    main_table = section.main_table
    view_written = False
    for block in section.blocks:
        if isinstance(block, TableBlock):
            lines.extend(_render_table(block, changes, block is main_table, newline))
            if block is main_table and changes.env_view is not None and section.environment_view is None:
                if changes.env_view.rows:
                    _ensure_blank_line(lines, newline)
                    lines.extend(render_environment_view(changes.env_view, newline))
                view_written = True
        elif isinstance(block, EnvironmentViewBlock):
            if changes.env_view is None:
                lines.extend(block.lines)
            elif changes.env_view.rows:
                lines.extend(render_environment_view(changes.env_view, newline))
            view_written = True
        else:
            lines.extend(block.lines)

    appended = False
    if main_table is None and changes.to_add:
        _ensure_blank_line(lines, newline)
        lines.extend(new_table(changes.to_add, newline))
        appended = True
    if not view_written and changes.env_view is not None and changes.env_view.rows:
        _ensure_blank_line(lines, newline)
        lines.extend(render_environment_view(changes.env_view, newline))
        appended = True
    if appended and not is_last:
        lines.append(newline)
    return lines


def render_new_section(changes: SectionChanges, level: int, newline: str) -> list[str]:
    lines = [f"{'#' * level} {changes.title}{newline}", newline]
    lines.extend(new_table(changes.to_add, newline))
    if changes.env_view is not None and changes.env_view.rows:
        lines.append(newline)
        lines.extend(render_environment_view(changes.env_view, newline))
    return lines


def render(document: Document, changeset: ChangeSet) -> str:
    """Apply *changeset* to *document* and return the updated Markdown text.

    Pure function: the input document is not modified and nothing is written
    to disk.
    """
    newline = document.newline
    lines: list[str] = []
    applied: set[str] = set()
    for index, section in enumerate(document.sections):
        changes = changeset.section(section.title)
        if changes is not None and section.title in applied:
            # Duplicate heading: additions and the view only go to the first one.
            changes = SectionChanges(
                changes.title,
                exists=True,
                to_remove=changes.to_remove,
                to_update=changes.to_update,
            )
        applied.add(section.title)
        is_last = index == len(document.sections) - 1
        lines.extend(render_section(section, changes, newline, is_last))

    for changes in changeset.sections:
        if changes.exists or not changes.to_add:
            continue
        _ensure_blank_line(lines, newline)
        lines.extend(render_new_section(changes, document.section_level, newline))

    text = "".join(lines)
    log("renderer", f"[Renderer] {len(lines)} lines rendered", style="dim")
    return text
