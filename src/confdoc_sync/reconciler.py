"""Reconciliation: diff classified keys against the documented entries.

reconcile() is a pure, deterministic function of the classification, the
parsed document and the section rules. Its ChangeSet is partitioned by
section; applying it and reconciling again yields an empty ChangeSet.

Every loaded key ends up in exactly one of: matched (documented somewhere),
to_add (in its rule section, or the proposed "Uncategorized" section), or
unmapped (prefix rules were ambiguous).
"""

from dataclasses import dataclass, field

from confdoc_sync.classifier import Classification, ClassifiedKey
from confdoc_sync.config import DEFAULT_TAG, DOC_ONLY_MARKERS, UNCATEGORIZED_SECTION, SectionRule
from confdoc_sync.docmodel import Document, DocumentedEntry, DocumentSection, EnvironmentViewBlock
from confdoc_sync.errors import AmbiguousMappingError, SecretExposureWarning, UnrecognizedTableError
from confdoc_sync.utils import log


# ============================================
# Data types
# ============================================

@dataclass(frozen=True)
class FieldDiff:
    field: str      # "type", "required" or "example"
    old: str
    new: str


@dataclass(frozen=True)
class EntryUpdate:
    key: ClassifiedKey
    entry: DocumentedEntry
    diffs: tuple[FieldDiff, ...]

    @property
    def name(self) -> str:
        return self.key.name


@dataclass(frozen=True)
class EnvironmentView:
    """Desired differences-by-environment table for one section."""
    environments: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]


@dataclass
class SectionChanges:
    title: str
    exists: bool                       # False for sections the renderer must create
    to_add: list[ClassifiedKey] = field(default_factory=list)
    to_remove: list[DocumentedEntry] = field(default_factory=list)
    to_update: list[EntryUpdate] = field(default_factory=list)
    unchanged: int = 0
    intentionally_undocumented: list[DocumentedEntry] = field(default_factory=list)
    env_view: EnvironmentView | None = None   # set only when the view must change

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_remove or self.to_update or self.env_view is not None)


@dataclass(frozen=True)
class UnmappedKey:
    key: ClassifiedKey
    candidates: tuple[str, ...]


@dataclass
class ChangeSet:
    sections: list[SectionChanges] = field(default_factory=list)
    unmapped: list[UnmappedKey] = field(default_factory=list)
    matched: list[str] = field(default_factory=list)
    unrecognized_tables: list[UnrecognizedTableError] = field(default_factory=list)
    secret_warnings: list[SecretExposureWarning] = field(default_factory=list)

    def section(self, title: str) -> SectionChanges | None:
        for changes in self.sections:
            if changes.title == title:
                return changes
        return None

    @property
    def is_empty(self) -> bool:
        """True when rendering would not change the document."""
        return all(changes.is_empty for changes in self.sections)

    @property
    def to_add(self) -> list[ClassifiedKey]:
        return [key for changes in self.sections for key in changes.to_add]

    @property
    def to_remove(self) -> list[DocumentedEntry]:
        return [entry for changes in self.sections for entry in changes.to_remove]

    @property
    def to_update(self) -> list[EntryUpdate]:
        return [update for changes in self.sections for update in changes.to_update]

    @property
    def intentionally_undocumented(self) -> list[DocumentedEntry]:
        return [entry for changes in self.sections for entry in changes.intentionally_undocumented]

    def summary(self) -> dict:
        """Counts for a human reviewer or a machine consumer."""
        return {
            "added": len(self.to_add),
            "removed": len(self.to_remove),
            "updated": len(self.to_update),
            "unchanged": sum(changes.unchanged for changes in self.sections),
            "unmapped": len(self.unmapped),
            "intentionally_undocumented": len(self.intentionally_undocumented),
            "unrecognized_tables": len(self.unrecognized_tables),
            "env_views": sum(1 for changes in self.sections if changes.env_view is not None),
            "secret_warnings": len(self.secret_warnings),
        }


# ============================================
# Section assignment
# ============================================


def _clean_prefix(prefix: str) -> str:
    return prefix.strip().rstrip("*")


def assign_section(name: str, rules: list[SectionRule]) -> str | None:
    """Return the title of the section claiming *name*, or None if no rule matches.

    Longest matching prefix wins, so "quarkus.otel.traces." beats
    "quarkus.otel.". Raises AmbiguousMappingError when the longest matches
    belong to different sections.
    """
    best_length = -1
    best_titles: list[str] = []
    for rule in rules:
        for prefix in rule.prefixes:
            cleaned = _clean_prefix(prefix)
            if not cleaned or not name.startswith(cleaned):
                continue
            if len(cleaned) > best_length:
                best_length = len(cleaned)
                best_titles = [rule.title]
            elif len(cleaned) == best_length and rule.title not in best_titles:
                best_titles.append(rule.title)
    if not best_titles:
        return None
    if len(best_titles) > 1:
        raise AmbiguousMappingError(name, best_titles)
    return best_titles[0]


# ============================================
# Field diffs
# ============================================


def _format_required(value: bool | None) -> str:
    if value is None:
        return "?"
    return "yes" if value else "no"


def diff_entry(key: ClassifiedKey, entry: DocumentedEntry, has_required: bool = True) -> tuple[FieldDiff, ...]:
    """Field-level diff for the columns the documented table actually has.

    *has_required* tells whether the table has a required column at all; a
    None documented_required in such a table is an unreadable cell and
    always differs.
    """
    diffs = []
    if entry.documented_type is not None and entry.documented_type != key.type:
        diffs.append(FieldDiff("type", entry.documented_type, key.type))
    if has_required and entry.documented_required != key.required:
        diffs.append(FieldDiff("required", _format_required(entry.documented_required), _format_required(key.required)))
    if entry.example_value is not None and entry.example_value != key.example_value:
        diffs.append(FieldDiff("example", entry.example_value, key.example_value))
    return tuple(diffs)


def is_documentation_only(entry: DocumentedEntry) -> bool:
    description = entry.description.lower()
    return any(marker in description for marker in DOC_ONLY_MARKERS)


# ============================================
# Environment view
# ============================================


def desired_environment_view(keys: list[ClassifiedKey], environments: tuple[str, ...]) -> EnvironmentView | None:
    variant = [k for k in keys if k.environment_variant]
    if not variant or not environments:
        return None
    rows = tuple((k.name, *(value for _, value in k.environment_values)) for k in variant)
    return EnvironmentView((DEFAULT_TAG, *environments), rows)


def _view_differs(existing: EnvironmentViewBlock | None, desired: EnvironmentView | None) -> bool:
    if existing is None:
        return desired is not None
    if desired is None:
        return True
    return existing.environments != desired.environments or existing.rows != desired.rows


# ============================================
# Reconciliation
# ============================================


def reconcile(
    classification: Classification,
    document: Document,
    rules: list[SectionRule],
    sort_added: bool = False,
) -> ChangeSet:
    """Compute the ChangeSet that brings *document* in line with the classified keys."""
    changeset = ChangeSet(
        unrecognized_tables=list(document.unrecognized_tables),
        secret_warnings=list(classification.warnings),
    )
    keys_by_name = {k.name: k for k in classification.keys}

    # Existing sections, in document order
    section_keys: dict[str, list[ClassifiedKey]] = {}
    for section in document.sections:
        changes = changeset.section(section.title)
        if changes is None:
            changes = SectionChanges(section.title, exists=True)
            changeset.sections.append(changes)
            section_keys[section.title] = []
        _reconcile_section(section, keys_by_name, changes, section_keys[section.title])

    documented = {entry.name for section in document.sections for entry in section.entries}
    changeset.matched = [k.name for k in classification.keys if k.name in documented]

    # Undocumented keys, grouped by their rule section in discovery order
    for key in classification.keys:
        if key.name in documented:
            continue
        try:
            title = assign_section(key.name, rules)
        except AmbiguousMappingError as exc:
            log("reconciler", f"[Reconciler] {exc}; left unmapped", style="yellow")
            changeset.unmapped.append(UnmappedKey(key, tuple(exc.candidates)))
            continue
        if title is None:
            title = UNCATEGORIZED_SECTION
        changes = changeset.section(title)
        if changes is None:
            changes = SectionChanges(title, exists=False)
            changeset.sections.append(changes)
            section_keys[title] = []
        changes.to_add.append(key)

    for changes in changeset.sections:
        if sort_added:
            changes.to_add.sort(key=lambda k: k.name)
        view_keys = section_keys[changes.title] + changes.to_add
        desired = desired_environment_view(view_keys, classification.environments)
        existing = document.section(changes.title).environment_view if changes.exists else None
        if _view_differs(existing, desired):
            changes.env_view = desired or EnvironmentView((), ())

    summary = changeset.summary()
    log(
        "reconciler",
        f"[Reconciler] +{summary['added']} -{summary['removed']} ~{summary['updated']} "
        f"={summary['unchanged']} unmapped:{summary['unmapped']}",
        style="dim",
    )
    return changeset


def _reconcile_section(
    section: DocumentSection,
    keys_by_name: dict[str, ClassifiedKey],
    changes: SectionChanges,
    matched_keys: list[ClassifiedKey],
) -> None:
    for table in section.tables:
        has_required = "required" in table.columns
        for entry in table.entries:
            key = keys_by_name.get(entry.name)
            if key is None:
                if is_documentation_only(entry):
                    changes.intentionally_undocumented.append(entry)
                else:
                    changes.to_remove.append(entry)
                continue
            if key not in matched_keys:
                matched_keys.append(key)
            diffs = diff_entry(key, entry, has_required)
            if diffs:
                changes.to_update.append(EntryUpdate(key, entry, diffs))
            else:
                changes.unchanged += 1
