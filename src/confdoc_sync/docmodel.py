"""Markdown documentation model: sections, verbatim prose and entry tables.

The parser keeps every raw line (line endings included) so that the renderer
can reproduce untouched regions byte for byte. Headings inside fenced code
blocks are ignored. Table columns are resolved by header name, never by
position, because column order varies between sections.
"""

import re
from collections import Counter
from dataclasses import dataclass, field

from confdoc_sync.config import COLUMN_ALIASES, ENV_VIEW_END, ENV_VIEW_START
from confdoc_sync.errors import UnrecognizedTableError
from confdoc_sync.utils import log


# ============================================
# Data types
# ============================================

@dataclass(frozen=True)
class DocumentedEntry:
    """One row of a documentation table describing a configuration key."""
    name: str
    documented_type: str | None        # None when the table has no type column
    documented_required: bool | None   # None when missing or unreadable
    description: str
    example_value: str | None          # None when the table has no example column


@dataclass(frozen=True)
class TableRow:
    line: str
    cells: tuple[str, ...]
    entry: DocumentedEntry | None      # None for rows with an empty name cell


@dataclass(frozen=True)
class ProseBlock:
    lines: tuple[str, ...]


@dataclass(frozen=True)
class TableBlock:
    header_lines: tuple[str, ...]      # header row and separator row, verbatim
    header: tuple[str, ...]
    columns: dict[str, int] = field(hash=False)
    rows: tuple[TableRow, ...] = ()

    @property
    def entries(self) -> list[DocumentedEntry]:
        return [row.entry for row in self.rows if row.entry is not None]

    @property
    def outer_pipes(self) -> bool:
        return self.header_lines[0].lstrip().startswith("|")


@dataclass(frozen=True)
class EnvironmentViewBlock:
    """The generated differences-by-environment table, markers included."""
    lines: tuple[str, ...]
    environments: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]  # (name, value per environment...)


@dataclass(frozen=True)
class DocumentSection:
    title: str                         # "" for the preamble before the first heading
    level: int                         # 0 for the preamble
    heading_line: str | None
    blocks: tuple = ()

    @property
    def tables(self) -> list[TableBlock]:
        return [b for b in self.blocks if isinstance(b, TableBlock)]

    @property
    def main_table(self) -> TableBlock | None:
        tables = self.tables
        return tables[0] if tables else None

    @property
    def entries(self) -> list[DocumentedEntry]:
        return [entry for table in self.tables for entry in table.entries]

    @property
    def environment_view(self) -> EnvironmentViewBlock | None:
        for block in self.blocks:
            if isinstance(block, EnvironmentViewBlock):
                return block
        return None

    @property
    def prose(self) -> list[ProseBlock]:
        return [b for b in self.blocks if isinstance(b, ProseBlock)]


@dataclass(frozen=True)
class Document:
    sections: tuple[DocumentSection, ...]
    newline: str = "\n"
    unrecognized_tables: tuple[UnrecognizedTableError, ...] = ()

    def section(self, title: str) -> DocumentSection | None:
        for section in self.sections:
            if section.title == title:
                return section
        return None

    @property
    def section_level(self) -> int:
        """Heading level to use for new sections: the level of existing entry sections."""
        with_entries = Counter(s.level for s in self.sections if s.level and s.entries)
        if with_entries:
            return with_entries.most_common(1)[0][0]
        return 2


# ============================================
# Cell helpers
# ============================================

_HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.*?)(?:[ \t]+#+)?[ \t]*$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_CELL_SPLIT_RE = re.compile(r"(?<!\\)\|")
_SEPARATOR_CELL_RE = re.compile(r"^:?-+:?$")

_TRUE_WORDS = {"yes", "y", "true", "required", "x", "✓", "✔", "✅"}
_FALSE_WORDS = {"no", "n", "false", "optional", "-", "—", ""}


def split_row(line: str) -> list[str]:
    """Split a pipe-delimited row into stripped cells; escaped pipes stay in the cell."""
    text = line.strip()
    if text.startswith("|"):
        text = text[1:]
    if text.endswith("|") and not text.endswith("\\|"):
        text = text[:-1]
    return [cell.strip() for cell in _CELL_SPLIT_RE.split(text)]


def unescape_cell(cell: str) -> str:
    return cell.replace("\\|", "|")


def escape_cell(value: str) -> str:
    return value.replace("|", "\\|")


def strip_code(cell: str) -> str:
    """Drop emphasis and a single pair of surrounding backticks from a cell."""
    text = unescape_cell(cell).strip()
    text = text.strip("*").strip()
    if len(text) >= 2 and text.startswith("`") and text.endswith("`"):
        text = text[1:-1]
    return text


def normalize_header(cell: str) -> str:
    return cell.strip().strip("*_`").strip().lower()


def parse_required(cell: str) -> bool | None:
    word = strip_code(cell).lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return None


def is_separator_row(line: str) -> bool:
    cells = split_row(line)
    return bool(cells) and all(_SEPARATOR_CELL_RE.match(c) for c in cells)


def _is_table_line(line: str) -> bool:
    """A table row holds at least one unescaped pipe; outer pipes are optional."""
    return bool(_CELL_SPLIT_RE.search(line.strip()))


def _starts_table(line: str, next_line: str) -> bool:
    """Header row followed by a delimiter row with the same number of cells."""
    return (
        _is_table_line(line)
        and _is_table_line(next_line)
        and is_separator_row(next_line)
        and len(split_row(line)) == len(split_row(next_line))
    )


def resolve_columns(header: list[str]) -> dict[str, int]:
    """Map column meanings (name, type, ...) to header positions by name.

    The first header matching an alias wins for each meaning.
    """
    columns: dict[str, int] = {}
    for index, cell in enumerate(header):
        label = normalize_header(cell)
        for meaning, aliases in COLUMN_ALIASES.items():
            if meaning not in columns and label in aliases:
                columns[meaning] = index
                break
    return columns


# ============================================
# Table parsing
# ============================================


def _cell(cells: list[str], columns: dict[str, int], meaning: str) -> str | None:
    index = columns.get(meaning)
    if index is None:
        return None
    return cells[index] if index < len(cells) else ""


def parse_entry(cells: list[str], columns: dict[str, int]) -> DocumentedEntry | None:
    """Build a DocumentedEntry from a row's cells; None when the name cell is empty."""
    name = strip_code(_cell(cells, columns, "name") or "")
    if not name:
        return None
    type_cell = _cell(cells, columns, "type")
    required_cell = _cell(cells, columns, "required")
    example_cell = _cell(cells, columns, "example")
    return DocumentedEntry(
        name=name,
        documented_type=strip_code(type_cell).lower() if type_cell is not None else None,
        documented_required=parse_required(required_cell) if required_cell is not None else None,
        description=unescape_cell(_cell(cells, columns, "description") or ""),
        example_value=strip_code(example_cell) if example_cell is not None else None,
    )


def parse_table(lines: list[str], section_title: str = "") -> TableBlock:
    """Parse header, separator and data rows of one table.

    Raises UnrecognizedTableError when no header cell names the key column.
    """
    header = split_row(lines[0])
    columns = resolve_columns(header)
    if "name" not in columns:
        raise UnrecognizedTableError(section_title, header)
    rows = []
    for line in lines[2:]:
        cells = split_row(line)
        rows.append(TableRow(line, tuple(cells), parse_entry(cells, columns)))
    return TableBlock(tuple(lines[:2]), tuple(header), columns, tuple(rows))


def parse_environment_view(lines: list[str]) -> EnvironmentViewBlock:
    """Parse the generated environment view between its markers."""
    table_lines = [line for line in lines if _is_table_line(line)]
    environments: tuple[str, ...] = ()
    rows = []
    if len(table_lines) >= 2:
        environments = tuple(strip_code(c) for c in split_row(table_lines[0])[1:])
        for line in table_lines[2:]:
            rows.append(tuple(strip_code(c) for c in split_row(line)))
    return EnvironmentViewBlock(tuple(lines), environments, tuple(rows))


# ============================================
# Document parsing
# ============================================


def _fence_flags(lines: list[str]) -> list[bool]:
    """Return, per line, whether it belongs to a fenced code block (fences included)."""
    flags = []
    fence: str | None = None
    for line in lines:
        match = _FENCE_RE.match(line)
        if fence is None:
            if match:
                fence = match.group(1)
                flags.append(True)
            else:
                flags.append(False)
        else:
            flags.append(True)
            if match and match.group(1) == fence:
                fence = None
    return flags


def _parse_blocks(lines: list[str], fenced: list[bool], title: str, errors: list) -> tuple:
    blocks: list = []
    prose: list[str] = []

    def _flush_prose() -> None:
        if prose:
            blocks.append(ProseBlock(tuple(prose)))
            prose.clear()

    i = 0
    while i < len(lines):
        line = lines[i]
        if not fenced[i] and line.strip() == ENV_VIEW_START:
            end = next((j for j in range(i + 1, len(lines)) if lines[j].strip() == ENV_VIEW_END), None)
            if end is not None:
                _flush_prose()
                blocks.append(parse_environment_view(lines[i:end + 1]))
                i = end + 1
                continue

        if (
            not fenced[i]
            and i + 1 < len(lines)
            and not fenced[i + 1]
            and _starts_table(line, lines[i + 1])
        ):
            end = i + 2
            while end < len(lines) and not fenced[end] and _is_table_line(lines[end]):
                end += 1
            table_lines = lines[i:end]
            try:
                table = parse_table(table_lines, title)
            except UnrecognizedTableError as exc:
                errors.append(exc)
                log("parser", f"[Parser] {exc}; kept verbatim", style="yellow")
                prose.extend(table_lines)
            else:
                _flush_prose()
                blocks.append(table)
            i = end
            continue

        prose.append(line)
        i += 1

    _flush_prose()
    return tuple(blocks)


def _detect_newline(text: str) -> str:
    match = re.search(r"\r\n|\n|\r", text)
    return match.group(0) if match else "\n"


def parse_document(text: str) -> Document:
    """Parse Markdown text into an ordered sequence of DocumentSections.

    Pure function. Concatenating every raw line of the result reproduces
    *text* exactly.
    """
    lines = text.splitlines(keepends=True)
    fenced = _fence_flags(lines)

    # Split on headings: (title, level, heading line, body start index)
    starts: list[tuple[str, int, str | None, int]] = [("", 0, None, 0)]
    for index, line in enumerate(lines):
        if fenced[index]:
            continue
        match = _HEADING_RE.match(line.rstrip("\r\n"))
        if match:
            starts.append((match.group(2).strip(), len(match.group(1)), line, index + 1))

    errors: list[UnrecognizedTableError] = []
    sections = []
    for n, (title, level, heading_line, body_start) in enumerate(starts):
        body_end = starts[n + 1][3] - 1 if n + 1 < len(starts) else len(lines)
        if heading_line is None and body_end == 0:
            continue  # no preamble
        body = lines[body_start:body_end]
        blocks = _parse_blocks(body, fenced[body_start:body_end], title, errors)
        sections.append(DocumentSection(title, level, heading_line, blocks))

    document = Document(tuple(sections), _detect_newline(text), tuple(errors))
    entry_count = sum(len(s.entries) for s in document.sections)
    log("parser", f"[Parser] {len(document.sections)} sections, {entry_count} documented entries", style="dim")
    return document


def document_lines(section: DocumentSection) -> list[str]:
    """All raw lines of a section, heading included."""
    lines = [section.heading_line] if section.heading_line is not None else []
    for block in section.blocks:
        if isinstance(block, TableBlock):
            lines.extend(block.header_lines)
            lines.extend(row.line for row in block.rows)
        else:
            lines.extend(block.lines)
    return lines
