"""Source loading: parse properties files and env templates into ConfigKeys.

Each ConfigSource is attributed to one tag (an environment, the base
``default`` properties, or the env ``template``). Keys are merged by exact
name across sources: the same name seen in several files is one ConfigKey
with several per-environment values, never several keys.
"""

import re
from dataclasses import dataclass, field

from confdoc_sync.config import (
    DEFAULT_TAG,
    ENV_TEMPLATE_KIND,
    PROFILE_ALIASES,
    PROPERTIES_KIND,
    SECRET_SEGMENTS,
    SECRET_SUBSTRINGS,
    SOURCE_KINDS,
    SOURCE_TAGS,
    TEMPLATE_TAG,
)
from confdoc_sync.errors import InvalidSourceError, MalformedSourceError
from confdoc_sync.utils import log


# ============================================
# Data types
# ============================================

@dataclass(frozen=True)
class ConfigSource:
    """One named configuration input, e.g. application-prod.properties."""
    name: str    # identifier used in origin sets and error messages
    tag: str     # "local", "prod", "test", "default" or "template"
    kind: str    # "properties" or "env-template"
    text: str


@dataclass(frozen=True)
class ConfigKey:
    """A configuration property or environment variable across all sources."""
    name: str
    raw_value: str | None                  # default literal or template fallback
    type: str
    origin: frozenset[str]
    per_environment_values: dict[str, str] = field(default_factory=dict, hash=False)
    is_secret_like: bool = False
    description: str = ""
    order: int = 0                         # discovery index across all sources


@dataclass(frozen=True)
class _Entry:
    name: str
    value: str
    line_number: int
    comment: str
    profile: str | None = None


# ============================================
# Type inference
# ============================================

_SEGMENT_SPLIT_RE = re.compile(r"[._\-\s\"]+")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_URL_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*(?::[A-Za-z][A-Za-z0-9+.\-]*)*://\S+$")
_IDENTIFIER_VALUE_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_\-]*$")
_REFERENCE_ONLY_RE = re.compile(r"^\$\{[A-Za-z_][\w.\-]*\}$")


def is_literal_value(value: str | None) -> bool:
    """True for a non-empty value that is not a bare ${VAR} reference.

    ${VAR:fallback} counts as a literal: the fallback is the default.
    """
    return bool(value) and not _REFERENCE_ONLY_RE.match(value)


def is_secret_like(name: str) -> bool:
    """Return True if the key name implies credentials.

    Substring markers (password, secret, token, ...) match anywhere; short
    markers like "key" only match a whole name segment, so API_KEY and
    quarkus.oidc.credentials.key match but keycloak does not.
    """
    lowered = name.lower()
    if any(marker in lowered for marker in SECRET_SUBSTRINGS):
        return True
    segments = {s for s in _SEGMENT_SPLIT_RE.split(lowered) if s}
    return bool(segments & SECRET_SEGMENTS)


def infer_type(name: str, values: list[str]) -> str:
    """Infer the semantic type of a key from its name and observed literals.

    Pure function. Empty values are ignored; a key with no literal at all is
    a string unless its name is secret-like.
    """
    if is_secret_like(name):
        return "secret"
    observed = [v for v in values if v != ""]
    if not observed:
        return "string"
    if all(v.lower() in ("true", "false") for v in observed):
        return "boolean"
    if all(_INTEGER_RE.match(v) for v in observed):
        return "integer"
    if all(_URL_RE.match(v) for v in observed):
        return "url"
    distinct = set(observed)
    if len(distinct) >= 2 and all(_IDENTIFIER_VALUE_RE.match(v) for v in distinct):
        return "enum"
    return "string"


# ============================================
# Parsing
# ============================================

_PROFILE_KEY_RE = re.compile(r"^%([A-Za-z0-9_\-]+)\.(.+)$")
_ENV_LINE_RE = re.compile(r"^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$")
_ASSIGNMENT_COMMENT_RE = re.compile(r"^[A-Za-z_%][\w.\-%\"]*\s*=")
_ENV_REFERENCE_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::([^}]*))?\}")


def _comment_text(line: str) -> str:
    return line.lstrip("#!").strip()


def _add_comment(comment_lines: list[str], line: str) -> None:
    """Keep a comment line as description unless it is a commented-out assignment."""
    text = _comment_text(line)
    if text and not _ASSIGNMENT_COMMENT_RE.match(text):
        comment_lines.append(text)


def _logical_lines(text: str) -> list[tuple[int, str]]:
    """Join backslash-continued lines; return (first line number, joined line) pairs."""
    result: list[tuple[int, str]] = []
    pending = ""
    start = 0
    for number, line in enumerate(text.splitlines(), start=1):
        if not pending:
            start = number
            current = line.strip()
        else:
            current = pending + line.strip()
        trailing = len(current) - len(current.rstrip("\\"))
        if trailing % 2 == 1 and not current.lstrip().startswith(("#", "!")):
            pending = current[:-1]
            continue
        pending = ""
        result.append((start, current))
    if pending:
        result.append((start, pending))
    return result


def parse_properties(source: ConfigSource) -> list[_Entry]:
    """Parse a properties-style source into entries.

    Accepts ``key=value`` and ``key: value``; '#' and '!' start comments.
    Raises MalformedSourceError on the first line that is not a comment,
    blank, or key-value pair.
    """
    entries: list[_Entry] = []
    comment_lines: list[str] = []
    for number, line in _logical_lines(source.text):
        if not line:
            comment_lines = []
            continue
        if line.startswith(("#", "!")):
            _add_comment(comment_lines, line)
            continue

        positions = [p for p in (line.find("="), line.find(":")) if p >= 0]
        if not positions:
            raise MalformedSourceError(source.name, number, line, "expected key=value")
        split_at = min(positions)
        key = line[:split_at].strip()
        value = line[split_at + 1:].strip()
        if not key or any(ch.isspace() for ch in key):
            raise MalformedSourceError(source.name, number, line, "invalid key")

        profile = None
        profile_match = _PROFILE_KEY_RE.match(key)
        if profile_match:
            profile, key = profile_match.group(1), profile_match.group(2)

        entries.append(_Entry(key, value, number, " ".join(comment_lines), profile))
        comment_lines = []
    return entries


def _unquote(value: str) -> str:
    if value[:1] in ("'", '"'):
        closing = value.find(value[0], 1)
        if closing > 0:
            # Anything after the closing quote can only be an inline comment.
            return value[1:closing]
    # Unquoted values may carry an inline comment after whitespace.
    hash_at = value.find(" #")
    if hash_at >= 0:
        value = value[:hash_at]
    return value.strip()


def parse_env_template(source: ConfigSource) -> list[_Entry]:
    """Parse an env-template source (``NAME=default_or_empty`` per line)."""
    entries: list[_Entry] = []
    comment_lines: list[str] = []
    for number, raw in enumerate(source.text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            comment_lines = []
            continue
        if line.startswith("#"):
            _add_comment(comment_lines, line)
            continue
        match = _ENV_LINE_RE.match(line)
        if not match:
            raise MalformedSourceError(source.name, number, line, "expected NAME=value")
        entries.append(_Entry(match.group(1), _unquote(match.group(2)), number, " ".join(comment_lines)))
        comment_lines = []
    return entries


def parse_source(source: ConfigSource) -> list[_Entry]:
    """Dispatch to the parser for the source kind after validating tag and kind."""
    if source.tag not in SOURCE_TAGS:
        raise InvalidSourceError(f"source '{source.name}' has unknown tag '{source.tag}'")
    if source.kind not in SOURCE_KINDS:
        raise InvalidSourceError(f"source '{source.name}' has unknown kind '{source.kind}'")
    if source.kind == PROPERTIES_KIND:
        return parse_properties(source)
    return parse_env_template(source)


# ============================================
# Merging
# ============================================

@dataclass
class _KeyBuilder:
    name: str
    order: int
    origin: set[str] = field(default_factory=set)
    default: str | None = None
    template: str | None = None
    env_values: dict[str, str] = field(default_factory=dict)
    description: str = ""

    def observed(self, fallbacks: dict[str, str]) -> list[str]:
        values = [self.default or "", self.template or "", *self.env_values.values()]
        values.append(fallbacks.get(self.name, ""))
        return values

    def build(self, fallbacks: dict[str, str]) -> ConfigKey:
        raw_value = self.default or self.template or fallbacks.get(self.name) or None
        return ConfigKey(
            name=self.name,
            raw_value=raw_value,
            type=infer_type(self.name, self.observed(fallbacks)),
            origin=frozenset(self.origin),
            per_environment_values=dict(self.env_values),
            is_secret_like=is_secret_like(self.name),
            description=self.description,
            order=self.order,
        )


def _environment_for(source: ConfigSource, entry: _Entry) -> str | None:
    """Resolve the tag an entry belongs to; None for an unknown profile."""
    if entry.profile is None:
        return source.tag
    return PROFILE_ALIASES.get(entry.profile.lower())


def load_sources(sources: list[ConfigSource]) -> list[ConfigKey]:
    """Parse every source and merge the entries into ConfigKeys.

    All sources are parsed before any merging happens, so a malformed source
    aborts the run without a partial result. Returned keys are in discovery
    order (source order, then line order).
    """
    parsed = [(source, parse_source(source)) for source in sources]

    builders: dict[str, _KeyBuilder] = {}
    fallbacks: dict[str, str] = {}
    for source, entries in parsed:
        for entry in entries:
            for ref_match in _ENV_REFERENCE_RE.finditer(entry.value):
                ref_name, ref_fallback = ref_match.group(1), ref_match.group(2)
                if ref_fallback:
                    fallbacks.setdefault(ref_name, ref_fallback)

            tag = _environment_for(source, entry)
            if tag is None:
                log("loader", f"[Loader] {source.name}:{entry.line_number}: unknown profile '%{entry.profile}', skipped", style="yellow")
                continue

            builder = builders.get(entry.name)
            if builder is None:
                builder = _KeyBuilder(entry.name, len(builders))
                builders[entry.name] = builder
            builder.origin.add(source.name)
            if entry.comment and not builder.description:
                builder.description = entry.comment

            if tag == DEFAULT_TAG:
                if is_literal_value(entry.value) and builder.default is None:
                    builder.default = entry.value
            elif tag == TEMPLATE_TAG:
                if is_literal_value(entry.value) and builder.template is None:
                    builder.template = entry.value
            else:
                builder.env_values[tag] = entry.value

    keys = [b.build(fallbacks) for b in builders.values()]
    log("loader", f"[Loader] {len(keys)} keys from {len(sources)} sources", style="dim")
    return keys


def kind_for_filename(path: str) -> str:
    """Guess a source kind from its file name."""
    if path.endswith(".properties"):
        return PROPERTIES_KIND
    return ENV_TEMPLATE_KIND
