"""Tests for requirement status, environment variance and redaction."""

from confdoc_sync.classifier import (
    RequirementStatus,
    classify_keys,
    effective_values,
    environments_of,
    example_value,
    is_environment_variant,
    requirement_status,
)
from confdoc_sync.config import REDACTED_PLACEHOLDER, UNSET_PLACEHOLDER, VARIANT_PLACEHOLDER
from confdoc_sync.loader import ConfigKey, ConfigSource, load_sources


def _key(name, raw_value=None, env=None, key_type="string", secret=False):
    return ConfigKey(
        name=name,
        raw_value=raw_value,
        type=key_type,
        origin=frozenset({"test"}),
        per_environment_values=dict(env or {}),
        is_secret_like=secret,
    )


def _template(text):
    return ConfigSource(".env.example", "template", "env-template", text)


# ============================================
# Requirement status
# ============================================


def test_template_key_without_default_is_required():
    keys = load_sources([_template("REDIS_HOST=\n")])
    assert requirement_status(keys[0]) is RequirementStatus.REQUIRED


def test_template_key_with_default_is_optional():
    keys = load_sources([_template("REDIS_HOST=localhost\n")])
    assert requirement_status(keys[0]) is RequirementStatus.OPTIONAL


def test_environment_value_is_not_a_default():
    sources = [
        ConfigSource("application-local.properties", "local", "properties", "REDIS_HOST=localhost\n"),
        _template("REDIS_HOST=\n"),
    ]
    classification = classify_keys(load_sources(sources))
    key = classification.keys[0]
    assert key.status is RequirementStatus.REQUIRED
    assert key.required
    assert key.example_value == "localhost"


def test_default_properties_value_makes_key_optional():
    sources = [ConfigSource("application.properties", "default", "properties", "quarkus.http.port=8080\n")]
    classification = classify_keys(load_sources(sources))
    assert classification.keys[0].status is RequirementStatus.OPTIONAL


def test_bare_reference_default_makes_key_required():
    """A ${VAR} reference with no fallback is not a default literal."""
    sources = [ConfigSource("application.properties", "default", "properties", "quarkus.datasource.jdbc.url=${DB_URL}\n")]
    key = classify_keys(load_sources(sources)).keys[0]
    assert key.status is RequirementStatus.REQUIRED
    assert key.example_value == ""


def test_reference_with_fallback_is_a_default():
    sources = [ConfigSource("application.properties", "default", "properties", "quarkus.http.port=${PORT:8080}\n")]
    key = classify_keys(load_sources(sources)).keys[0]
    assert key.status is RequirementStatus.OPTIONAL


# ============================================
# Environment variance
# ============================================


def test_effective_values_inherit_default():
    key = _key("quarkus.http.port", raw_value="8080", env={"test": "0"})
    assert effective_values(key, ("local", "prod", "test")) == {"local": "8080", "prod": "8080", "test": "0"}


def test_differing_values_are_environment_variant():
    key = _key("quarkus.otel.traces.sampler.arg", env={"local": "1.0", "prod": "0.1"})
    assert is_environment_variant(key, ("local", "prod"))


def test_same_value_everywhere_is_not_variant():
    key = _key("REDIS_PORT", raw_value="6379", env={"local": "6379"})
    assert not is_environment_variant(key, ("local", "prod"))


def test_single_environment_value_is_not_variant():
    key = _key("REDIS_HOST", env={"local": "localhost"})
    assert not is_environment_variant(key, ("local", "prod"))


def test_single_profile_override_of_default_is_variant():
    """A %prod override differing from the base value is variant even with no other environment loaded."""
    text = "quarkus.otel.traces.sampler.arg=1.0\n%prod.quarkus.otel.traces.sampler.arg=0.1\n"
    sources = [ConfigSource("application.properties", "default", "properties", text)]
    classification = classify_keys(load_sources(sources))
    key = classification.keys[0]
    assert classification.environments == ("prod",)
    assert key.environment_variant
    assert key.example_value == VARIANT_PLACEHOLDER
    assert key.environment_values == (("default", "1.0"), ("prod", "0.1"))


def test_override_equal_to_default_is_not_variant():
    key = _key("quarkus.http.port", raw_value="8080", env={"prod": "8080"})
    assert not is_environment_variant(key, ("prod",))


def test_variant_key_example_points_to_environment_view():
    sources = [
        ConfigSource("application-local.properties", "local", "properties", "quarkus.otel.traces.sampler.arg=1.0\n"),
        ConfigSource("application-prod.properties", "prod", "properties", "quarkus.otel.traces.sampler.arg=0.1\n"),
    ]
    classification = classify_keys(load_sources(sources))
    key = classification.keys[0]
    assert key.environment_variant
    assert key.example_value == VARIANT_PLACEHOLDER
    assert key.environment_values == (("default", UNSET_PLACEHOLDER), ("local", "1.0"), ("prod", "0.1"))


def test_environment_values_mark_unset_environments():
    key = _key("REDIS_HOST", env={"local": "localhost", "prod": "redis"})
    classification = classify_keys([key], ("local", "prod", "test"))
    assert classification.keys[0].environment_values == (
        ("default", UNSET_PLACEHOLDER),
        ("local", "localhost"),
        ("prod", "redis"),
        ("test", UNSET_PLACEHOLDER),
    )


def test_environments_of_uses_canonical_order():
    keys = [_key("A", env={"test": "1"}), _key("B", env={"local": "2"})]
    assert environments_of(keys) == ("local", "test")


# ============================================
# Redaction
# ============================================


def test_secret_example_is_always_redacted():
    key = _key("REDIS_PASSWORD", raw_value="hunter2", env={"prod": "s3cr3t"}, key_type="secret", secret=True)
    assert example_value(key, variant=True) == REDACTED_PLACEHOLDER
    assert example_value(key, variant=False) == REDACTED_PLACEHOLDER


def test_secret_environment_values_are_redacted():
    key = _key("REDIS_PASSWORD", env={"local": "dev", "prod": "s3cr3t"}, key_type="secret", secret=True)
    classification = classify_keys([key], ("local", "prod"))
    values = dict(classification.keys[0].environment_values)
    assert values == {"default": UNSET_PLACEHOLDER, "local": REDACTED_PLACEHOLDER, "prod": REDACTED_PLACEHOLDER}
    assert "s3cr3t" not in repr(classification.keys[0].example_value)


def test_secret_with_literal_emits_warning():
    key = _key("REDIS_PASSWORD", env={"local": "dev"}, key_type="secret", secret=True)
    classification = classify_keys([key], ("local",))
    assert len(classification.warnings) == 1
    assert classification.warnings[0].key == "REDIS_PASSWORD"


def test_secret_without_literal_emits_no_warning():
    key = _key("REDIS_PASSWORD", env={"local": ""}, key_type="secret", secret=True)
    classification = classify_keys([key], ("local",))
    assert classification.warnings == ()


def test_classify_keys_filters_unknown_environments():
    key = _key("A", env={"local": "1"})
    classification = classify_keys([key], ("prod", "local", "template"))
    assert classification.environments == ("local", "prod")
