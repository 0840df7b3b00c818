"""Key classification: requirement status, environment variance and redaction.

Requirement status is always derived from the loaded sources, never stored:
a key is Required when no source gives it a default literal and the env
template documents no fallback. Values found in local/prod/test sources are
environment overrides, not defaults.
"""

from dataclasses import dataclass
from enum import Enum

from confdoc_sync.config import DEFAULT_TAG, ENVIRONMENTS, REDACTED_PLACEHOLDER, UNSET_PLACEHOLDER, VARIANT_PLACEHOLDER
from confdoc_sync.errors import SecretExposureWarning
from confdoc_sync.loader import ConfigKey, is_literal_value


class RequirementStatus(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"


@dataclass(frozen=True)
class ClassifiedKey:
    """A ConfigKey plus everything derived from it for documentation."""

    key: ConfigKey
    status: RequirementStatus
    environment_variant: bool
    example_value: str
    environment_values: tuple[tuple[str, str], ...]  # ("default" or environment, display value)

    @property
    def name(self) -> str:
        return self.key.name

    @property
    def type(self) -> str:
        return self.key.type

    @property
    def required(self) -> bool:
        return self.status is RequirementStatus.REQUIRED

    @property
    def is_secret_like(self) -> bool:
        return self.key.is_secret_like


@dataclass(frozen=True)
class Classification:
    keys: tuple[ClassifiedKey, ...]
    environments: tuple[str, ...]
    warnings: tuple[SecretExposureWarning, ...]


# ============================================
# Pure rules
# ============================================


def requirement_status(key: ConfigKey) -> RequirementStatus:
    """Required iff no default literal and no documented template fallback."""
    if not is_literal_value(key.raw_value):
        return RequirementStatus.REQUIRED
    return RequirementStatus.OPTIONAL


def effective_values(key: ConfigKey, environments: tuple[str, ...]) -> dict[str, str | None]:
    """Value each environment ends up with: its own override, else the default."""
    result: dict[str, str | None] = {}
    for env in environments:
        value = key.per_environment_values.get(env)
        if value is None or value == "":
            value = key.raw_value
        result[env] = value
    return result


def is_environment_variant(key: ConfigKey, environments: tuple[str, ...]) -> bool:
    """True when two or more distinct values are in effect.

    The default always takes part in the comparison, so a single ``%prod.``
    override of a base value is enough to make a key variant.
    """
    values = {v for v in effective_values(key, environments).values() if v}
    if is_literal_value(key.raw_value):
        values.add(key.raw_value)
    return len(values) > 1


def example_value(key: ConfigKey, variant: bool) -> str:
    """Pick the example shown in the main table.

    Secret-like keys always get the redaction placeholder. Variant keys point
    at the environment view instead of asserting one static value.
    """
    if key.is_secret_like:
        return REDACTED_PLACEHOLDER
    if variant:
        return VARIANT_PLACEHOLDER
    if key.raw_value:
        return key.raw_value
    for value in key.per_environment_values.values():
        if value:
            return value
    return ""


def _display_value(key: ConfigKey, value: str | None) -> str:
    if not value:
        return UNSET_PLACEHOLDER
    if key.is_secret_like:
        return REDACTED_PLACEHOLDER
    return value


def display_environment_values(key: ConfigKey, environments: tuple[str, ...]) -> tuple[tuple[str, str], ...]:
    """Display values for the environment view, redacted for secrets.

    The first pair is the default, followed by one pair per environment.
    """
    default = key.raw_value if is_literal_value(key.raw_value) else None
    rows = [(DEFAULT_TAG, _display_value(key, default))]
    for env, value in effective_values(key, environments).items():
        rows.append((env, _display_value(key, value)))
    return tuple(rows)


def _secret_warning(key: ConfigKey) -> SecretExposureWarning | None:
    values = [key.raw_value, *key.per_environment_values.values()]
    if key.is_secret_like and any(is_literal_value(v) for v in values):
        return SecretExposureWarning(key.name, sorted(key.origin))
    return None


def environments_of(keys: list[ConfigKey]) -> tuple[str, ...]:
    """Environments that appear in at least one key, in canonical order."""
    seen = {env for key in keys for env in key.per_environment_values}
    return tuple(env for env in ENVIRONMENTS if env in seen)


def classify_keys(keys: list[ConfigKey], environments: tuple[str, ...] | None = None) -> Classification:
    """Classify every key.

    *environments* lists the environments that were loaded; keys absent from
    one of them inherit the default there. When omitted it is derived from
    the keys themselves.
    """
    if environments is None:
        environments = environments_of(keys)
    else:
        environments = tuple(env for env in ENVIRONMENTS if env in environments)

    classified = []
    warnings = []
    for key in keys:
        variant = is_environment_variant(key, environments)
        classified.append(ClassifiedKey(
            key=key,
            status=requirement_status(key),
            environment_variant=variant,
            example_value=example_value(key, variant),
            environment_values=display_environment_values(key, environments),
        ))
        warning = _secret_warning(key)
        if warning is not None:
            warnings.append(warning)

    return Classification(tuple(classified), environments, tuple(warnings))
