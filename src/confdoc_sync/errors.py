"""Error taxonomy for the reconciliation pipeline.

Parse-time errors on inputs are fatal. Ambiguities found while classifying or
reconciling are recoverable: the stage that raises them also catches them and
degrades to "flag for human review".
"""


class ConfdocSyncError(Exception):
    """Base class for every error raised by confdoc-sync."""


class MalformedSourceError(ConfdocSyncError):
    """A configuration source could not be parsed as key-value pairs."""

    def __init__(self, source: str, line_number: int, content: str, reason: str = "") -> None:
        self.source = source
        self.line_number = line_number
        self.content = content
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"{source}:{line_number}: cannot parse {content!r}{detail}")


class UnrecognizedTableError(ConfdocSyncError):
    """A documentation table has no recognizable name column."""

    def __init__(self, section: str, header: list[str]) -> None:
        self.section = section
        self.header = header
        title = section or "<preamble>"
        super().__init__(f"table in section '{title}' has no name column (header: {', '.join(header)})")


class AmbiguousMappingError(ConfdocSyncError):
    """A key matches more than one section's prefix rule equally well."""

    def __init__(self, key: str, candidates: list[str]) -> None:
        self.key = key
        self.candidates = candidates
        super().__init__(f"key '{key}' matches several sections: {', '.join(candidates)}")


class SecretExposureWarning(UserWarning):
    """A secret-like key had a literal value that was redacted on render."""

    def __init__(self, key: str, sources: list[str]) -> None:
        self.key = key
        self.sources = sources
        super().__init__(f"secret-like key '{key}' has a literal value in {', '.join(sources)}; rendered redacted")


class InvalidSourceError(ConfdocSyncError):
    """A source was declared with an unknown tag or kind."""
