"""Text normalization for exact duplicate matching.

Lowercases, folds diacritics (Czech listings mix "Brno"/"Brně",
"Zámek"/"Zamek"), collapses whitespace, strips punctuation and resolves
city aliases ("Praha" and "Prague" are the same city).
"""

import re
import unicodedata
from collections.abc import Callable
from pathlib import Path

import yaml


def fold_diacritics(text: str) -> str:
    """Remove combining marks, e.g. ``"zámek"`` -> ``"zamek"``."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(text: str | None) -> str:
    """Normalize text for matching purposes.

    Steps:
        1. Return empty string for None/empty input
        2. Lowercase and fold diacritics
        3. Strip punctuation (hyphens are kept)
        4. Collapse whitespace to single spaces

    Args:
        text: Input text to normalize.

    Returns:
        Normalized text string.
    """
    if not text:
        return ""

    result = fold_diacritics(text.lower())
    result = re.sub(r"[\"'!?,.:;()\[\]{}|/\\]", " ", result)
    return re.sub(r"\s+", " ", result).strip()


def normalize_city(city: str | None, aliases: dict[str, str] | None = None) -> str:
    """Normalize a city name, applying alias resolution if configured.

    Args:
        city: City name to normalize.
        aliases: Optional dict mapping normalized alias names to the
                 normalized canonical city name.

    Returns:
        Normalized city name (possibly resolved via alias).
    """
    if not city:
        return ""

    normalized = normalize_text(city)
    if aliases and normalized in aliases:
        return aliases[normalized]
    return normalized


def make_city_normalizer(aliases: dict[str, str] | None = None) -> Callable[[str | None], str]:
    """Bind an alias table into a ``normalize(name) -> canonical`` callable."""

    def normalize(city: str | None) -> str:
        return normalize_city(city, aliases)

    return normalize


def load_city_aliases(config_path: Path) -> dict[str, str]:
    """Load city alias mappings from a YAML config file.

    The file maps a canonical city to its aliases::

        praha: [prague, prag]

    All names are normalized at load time.

    Args:
        config_path: Path to the city_aliases.yaml file.

    Returns:
        Dict mapping each normalized alias (and the canonical name itself)
        to the normalized canonical name.
    """
    with open(config_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if not raw:
        return {}

    aliases: dict[str, str] = {}
    for canonical, names in raw.items():
        target = normalize_text(canonical)
        aliases[target] = target
        for name in names or []:
            aliases[normalize_text(name)] = target
    return aliases
