"""Reading pipeline inputs from disk: source files, discovery and section rules.

Everything here runs on the caller's side of the pipeline. The core stages
only ever see ConfigSource values and rule tuples.
"""

import os
import re

from confdoc_sync.config import (
    DEFAULT_TAG,
    ENV_TEMPLATE_FILES,
    PROFILE_ALIASES,
    PROPERTIES_DIRS,
    SOURCE_TAGS,
    TEMPLATE_TAG,
    SectionRule,
)
from confdoc_sync.errors import InvalidSourceError
from confdoc_sync.loader import ConfigSource, kind_for_filename
from confdoc_sync.utils import read_text

_PROFILE_FILE_RE = re.compile(r"^application-([A-Za-z0-9_\-]+)\.properties$")
_RULE_LINE_RE = re.compile(r"^(.+?)\s*[:=]\s*(.+)$")


# ============================================
# Sources
# ============================================


def parse_source_option(value: str) -> tuple[str, str]:
    """Split a ``TAG=PATH`` command-line value into (tag, path)."""
    tag, sep, path = value.partition("=")
    tag = tag.strip()
    if not sep or not path.strip():
        raise InvalidSourceError(f"expected TAG=PATH, got '{value}'")
    if tag not in SOURCE_TAGS:
        allowed = ", ".join(sorted(SOURCE_TAGS))
        raise InvalidSourceError(f"unknown source tag '{tag}' (allowed: {allowed})")
    return tag, path.strip()


def read_source(path: str, tag: str, name: str | None = None) -> ConfigSource:
    """Read one source file; the kind is taken from the file name."""
    return ConfigSource(
        name=name or path,
        tag=tag,
        kind=kind_for_filename(path),
        text=read_text(path),
    )


def tag_for_filename(filename: str) -> str | None:
    """Map a conventional configuration file name to its source tag."""
    if filename == "application.properties":
        return DEFAULT_TAG
    match = _PROFILE_FILE_RE.match(filename)
    if match:
        return PROFILE_ALIASES.get(match.group(1).lower())
    if filename in ENV_TEMPLATE_FILES:
        return TEMPLATE_TAG
    return None


def discover_sources(project_dir: str) -> list[tuple[str, str]]:
    """Find configuration sources in a project directory.

    Returns (tag, path) pairs: the base application.properties first, then
    profile files in name order, then the env template.
    """
    found: list[tuple[str, str]] = []
    seen: set[str] = set()
    for sub in PROPERTIES_DIRS:
        directory = os.path.normpath(os.path.join(project_dir, sub))
        try:
            filenames = sorted(os.listdir(directory))
        except OSError:
            continue
        for filename in filenames:
            path = os.path.join(directory, filename)
            tag = tag_for_filename(filename)
            if tag is None or path in seen or not os.path.isfile(path):
                continue
            seen.add(path)
            found.append((tag, path))

    order = {DEFAULT_TAG: 0, TEMPLATE_TAG: 2}
    found.sort(key=lambda item: order.get(item[0], 1))
    return found


# ============================================
# Section rules
# ============================================


def parse_section_option(value: str) -> SectionRule:
    """Parse ``Title=prefix,prefix`` into a SectionRule."""
    title, sep, prefixes = value.rpartition("=")
    if not sep or not title.strip():
        raise ValueError(f"expected 'Section Title=prefix,prefix', got '{value}'")
    parts = tuple(p.strip() for p in prefixes.split(",") if p.strip())
    if not parts:
        raise ValueError(f"section '{title.strip()}' has no prefixes")
    return SectionRule(title.strip(), parts)


def parse_rules_file(text: str) -> list[SectionRule]:
    """Parse a rules file: one ``Section Title: prefix, prefix`` per line.

    Blank lines and '#' comments are ignored. Repeating a title extends that
    section's prefixes rather than creating a second rule.
    """
    rules: dict[str, list[str]] = {}
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        match = _RULE_LINE_RE.match(line)
        if not match:
            raise ValueError(f"rules line {number}: expected 'Title: prefix, prefix', got '{line}'")
        title = match.group(1).strip()
        prefixes = [p.strip() for p in match.group(2).split(",") if p.strip()]
        rules.setdefault(title, []).extend(prefixes)
    return [SectionRule(title, tuple(prefixes)) for title, prefixes in rules.items()]
