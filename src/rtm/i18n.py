"""Translated messages for validation errors and bracket labels.

String tables live in ``locales/strings_<lang>.yaml``. Keys are dotted
paths (``errors.NO_WINNER``, ``labels.ordinals.1``) and values are
``str.format`` templates.
"""

import os
from typing import Any, Dict, Optional

import yaml

from rtm.paths import get_locales_dir

SUPPORTED_LANGUAGES = ["en", "pt"]
DEFAULT_LANGUAGE = "en"

_tables: Dict[str, Dict[str, Any]] = {}

# None means "follow RTM_LANG"
_active_language: Optional[str] = None


def _check_language(lang: str) -> None:
    if lang not in SUPPORTED_LANGUAGES:
        raise ValueError(
            f"Language '{lang}' not supported. Supported languages: {SUPPORTED_LANGUAGES}"
        )


def load_strings(lang: str) -> Dict[str, Any]:
    """
    Load (and cache) the string table for a language.

    Args:
        lang: Language code (en, pt)

    Returns:
        Nested dictionary parsed from the YAML table

    Raises:
        ValueError: If the language is not supported
        FileNotFoundError: If the table is missing from the package
    """
    _check_language(lang)

    table = _tables.get(lang)
    if table is not None:
        return table

    path = get_locales_dir() / f"strings_{lang}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Strings file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        _tables[lang] = yaml.safe_load(f) or {}
    return _tables[lang]


def _lookup(table: Dict[str, Any], key: str) -> Any:
    node: Any = table
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def get_string(key: str, lang: str = None, **kwargs) -> str:
    """
    Render a message in the given (or active) language.

    Keys missing from the requested table fall back to English, then to the
    key itself. A template whose placeholders are not all supplied is
    returned unformatted.

    Examples:
        >>> get_string("errors.SET_MIN_GAMES_FOR_WINNER", "en", min_games=6)
        'Minimum 6 games required for the winner'
    """
    template = None
    for candidate in dict.fromkeys([lang or get_language(), DEFAULT_LANGUAGE]):
        try:
            template = _lookup(load_strings(candidate), key)
        except (ValueError, FileNotFoundError):
            template = None
        if template is not None:
            break

    if not isinstance(template, str):
        return key
    if not kwargs:
        return template
    try:
        return template.format(**kwargs)
    except (KeyError, ValueError):
        return template


def set_language(lang: str) -> None:
    """Set the language used when get_string is called without one."""
    global _active_language
    _check_language(lang)
    _active_language = lang


def get_language() -> str:
    return _active_language or get_language_from_env()


def clear_cache() -> None:
    """Drop loaded tables so the next lookup rereads the YAML files."""
    _tables.clear()


def get_language_from_env() -> str:
    """
    Language from the RTM_LANG environment variable.

    Returns:
        Language code (DEFAULT_LANGUAGE if unset or unsupported)
    """
    env_lang = os.environ.get("RTM_LANG", DEFAULT_LANGUAGE)
    return env_lang if env_lang in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE
