"""End-to-end synchronization: load → classify → parse → reconcile → render.

This is the main entry point for callers. It chains the pure pipeline stages
and returns everything a reviewer needs before the calling collaborator
decides whether to overwrite the documentation on disk.
"""

from dataclasses import dataclass

from confdoc_sync.classifier import Classification, classify_keys, environments_of
from confdoc_sync.config import DEFAULT_SECTION_RULES, ENVIRONMENTS, SectionRule, SyncOptions
from confdoc_sync.docmodel import Document, parse_document
from confdoc_sync.errors import SecretExposureWarning
from confdoc_sync.loader import ConfigSource, load_sources
from confdoc_sync.reconciler import ChangeSet, reconcile
from confdoc_sync.renderer import render


@dataclass(frozen=True)
class SyncResult:
    document: str
    original: str
    changeset: ChangeSet
    classification: Classification

    @property
    def changed(self) -> bool:
        return self.document != self.original

    @property
    def warnings(self) -> list[SecretExposureWarning]:
        return list(self.classification.warnings)

    def summary(self) -> dict:
        return self.changeset.summary()


def synchronize(
    sources: list[ConfigSource],
    document_text: str,
    rules: list[SectionRule] | None = None,
    options: SyncOptions | None = None,
) -> SyncResult:
    """Reconcile *document_text* against *sources* and render the update.

    Raises MalformedSourceError (or another ConfdocSyncError) when an input
    cannot be read; recoverable ambiguities are reported in the ChangeSet.
    """
    if rules is None:
        rules = list(DEFAULT_SECTION_RULES)
    if options is None:
        options = SyncOptions()

    keys = load_sources(sources)
    tags = {s.tag for s in sources} | set(environments_of(keys))
    classification = classify_keys(keys, tuple(env for env in ENVIRONMENTS if env in tags))

    document: Document = parse_document(document_text)

    changeset = reconcile(classification, document, rules, sort_added=options.sort_added)
    updated = render(document, changeset)
    return SyncResult(updated, document_text, changeset, classification)
