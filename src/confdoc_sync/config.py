"""Configuration constants for the configuration-documentation synchronizer.

Source tags, secret detection markers, documentation table column aliases and
the default section-to-prefix rules used when the caller supplies none.
"""

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

# Deployment environments, in the column order used by the environment view.
ENVIRONMENTS = ("local", "prod", "test")

DEFAULT_TAG = "default"
TEMPLATE_TAG = "template"
SOURCE_TAGS = {DEFAULT_TAG, TEMPLATE_TAG, *ENVIRONMENTS}

PROPERTIES_KIND = "properties"
ENV_TEMPLATE_KIND = "env-template"
SOURCE_KINDS = {PROPERTIES_KIND, ENV_TEMPLATE_KIND}

# Quarkus profile names that map onto an environment tag.
PROFILE_ALIASES = {
    "dev": "local",
    "local": "local",
    "prod": "prod",
    "production": "prod",
    "test": "test",
}

# File names recognized when discovering sources in a project directory.
PROPERTIES_DIRS = ("src/main/resources", "config", ".")
ENV_TEMPLATE_FILES = (".env.example", ".env.template", ".env.sample", "env.template")


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

KEY_TYPES = ("string", "boolean", "integer", "url", "secret", "enum")

# Case-insensitive substrings that make a key secret-like anywhere in its name.
SECRET_SUBSTRINGS = ("password", "passwd", "secret", "token", "credential", "private-key", "private_key")

# Whole name segments (split on '.', '_' and '-') that make a key secret-like.
SECRET_SEGMENTS = {"key", "apikey", "pwd"}

REDACTED_PLACEHOLDER = "<redacted>"
VARIANT_PLACEHOLDER = "(varies by environment)"
UNSET_PLACEHOLDER = "(unset)"


# ---------------------------------------------------------------------------
# Documentation tables
# ---------------------------------------------------------------------------

# Header aliases per column meaning; headers are lower-cased and stripped of
# markdown emphasis before lookup.
COLUMN_ALIASES = {
    "name": {"name", "key", "property", "variable", "env var", "environment variable", "config key", "setting"},
    "type": {"type", "kind"},
    "required": {"required", "mandatory", "required?"},
    "description": {"description", "desc", "notes", "purpose", "meaning"},
    "example": {"example", "example value", "default", "default value", "value"},
}

DEFAULT_TABLE_COLUMNS = ("name", "type", "required", "description", "example")
DEFAULT_TABLE_HEADER = ("Name", "Type", "Required", "Description", "Example")

DOC_ONLY_MARKERS = ("doc-only", "documentation-only")

ENV_VIEW_START = "<!-- confdoc-sync:env-differences -->"
ENV_VIEW_END = "<!-- /confdoc-sync:env-differences -->"
ENV_VIEW_TITLE = "**Differences by environment**"

UNCATEGORIZED_SECTION = "Uncategorized"


# ---------------------------------------------------------------------------
# Section rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SectionRule:
    """Claims every key that starts with one of ``prefixes`` for ``title``."""

    title: str
    prefixes: tuple[str, ...]


DEFAULT_SECTION_RULES = (
    SectionRule("Application Configuration", ("quarkus.application.", "APP_", "app.")),
    SectionRule("HTTP Configuration", ("quarkus.http.", "HTTP_", "PORT")),
    SectionRule("Database Configuration", ("quarkus.datasource.", "quarkus.hibernate-orm.", "DB_", "DATABASE_")),
    SectionRule("Redis Configuration", ("quarkus.redis.", "quarkus.cache.redis.", "REDIS_")),
    SectionRule("OpenTelemetry Configuration", ("quarkus.otel.", "OTEL_")),
    SectionRule("Swagger / OpenAPI Configuration", ("quarkus.swagger-ui.", "quarkus.smallrye-openapi.")),
    SectionRule("Health Check Configuration", ("quarkus.smallrye-health.",)),
    SectionRule("Logging Configuration", ("quarkus.log.", "LOG_")),
)


@dataclass(frozen=True)
class SyncOptions:
    """Rendering switches supplied by the caller."""

    sort_added: bool = False
