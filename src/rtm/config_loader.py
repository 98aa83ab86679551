"""Stage configuration loader and validator."""

from pathlib import Path
from typing import Any

import yaml

from rtm.i18n import SUPPORTED_LANGUAGES
from rtm.models import PairFormation, Ruleset, SeedingPolicy


class ConfigError(Exception):
    """Configuration validation error."""

    pass


DEFAULTS = {
    "ruleset": Ruleset.STANDARD.value,
    "qualifiers_per_group": 2,
    "seeding_policy": SeedingPolicy.BEST_VS_BEST.value,
    "random_seed": 42,
    "group_size_preference": 3,
    "best_of": 1,
    "lang": "en",
    "format": "fixed-pairs",
    "pair_formation": PairFormation.BEST_WITH_BEST.value,
}

FORMATS = ("fixed-pairs", "rotating-pairs")


def load_config(path: str) -> dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        path: Path to YAML config file

    Returns:
        Dictionary with configuration values

    Raises:
        ConfigError: If file not found or invalid YAML
    """
    config_file = Path(path)

    if not config_file.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")

    if config is None:
        raise ConfigError("Config file is empty")

    if not isinstance(config, dict):
        raise ConfigError("Config file must contain a mapping")

    return config


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate configuration values.

    Every field is optional and falls back to DEFAULTS.

    Args:
        config: Configuration dictionary

    Returns:
        Validated and normalized configuration

    Raises:
        ConfigError: If validation fails
    """
    validated = {}

    ruleset = config.get("ruleset", DEFAULTS["ruleset"])
    try:
        validated["ruleset"] = Ruleset(ruleset).value
    except ValueError:
        choices = ", ".join(r.value for r in Ruleset)
        raise ConfigError(f"ruleset must be one of {choices}, got '{ruleset}'")

    validated["qualifiers_per_group"] = config.get("qualifiers_per_group", DEFAULTS["qualifiers_per_group"])
    if not _is_int(validated["qualifiers_per_group"]) or validated["qualifiers_per_group"] < 1:
        raise ConfigError("qualifiers_per_group must be a positive integer")

    policy = config.get("seeding_policy", DEFAULTS["seeding_policy"])
    try:
        validated["seeding_policy"] = SeedingPolicy(policy).value
    except ValueError:
        choices = ", ".join(p.value for p in SeedingPolicy)
        raise ConfigError(f"seeding_policy must be one of {choices}, got '{policy}'")

    validated["random_seed"] = config.get("random_seed", DEFAULTS["random_seed"])
    if not _is_int(validated["random_seed"]):
        raise ConfigError("random_seed must be an integer")

    group_size = config.get("group_size_preference", DEFAULTS["group_size_preference"])
    if group_size not in (3, 4, 5):
        raise ConfigError(f"group_size_preference must be 3, 4 or 5, got {group_size}")
    validated["group_size_preference"] = group_size

    best_of = config.get("best_of", DEFAULTS["best_of"])
    if not _is_int(best_of) or best_of < 1 or best_of % 2 == 0:
        raise ConfigError(f"best_of must be a positive odd integer, got {best_of}")
    validated["best_of"] = best_of

    lang = config.get("lang", DEFAULTS["lang"])
    if lang not in SUPPORTED_LANGUAGES:
        raise ConfigError(f"lang must be one of {', '.join(SUPPORTED_LANGUAGES)}, got '{lang}'")
    validated["lang"] = lang

    # rotating-pairs: individual players, groups of 4, partner changes every match
    stage_format = config.get("format", DEFAULTS["format"])
    if stage_format not in FORMATS:
        raise ConfigError(f"format must be one of {', '.join(FORMATS)}, got '{stage_format}'")
    validated["format"] = stage_format

    formation = config.get("pair_formation", DEFAULTS["pair_formation"])
    try:
        validated["pair_formation"] = PairFormation(formation).value
    except ValueError:
        choices = ", ".join(p.value for p in PairFormation)
        raise ConfigError(f"pair_formation must be one of {choices}, got '{formation}'")

    return validated


def load_and_validate_config(path: str) -> dict[str, Any]:
    """Load and validate configuration in one step.

    Args:
        path: Path to YAML config file

    Returns:
        Validated configuration dictionary

    Raises:
        ConfigError: If loading or validation fails
    """
    config = load_config(path)
    return validate_config(config)
