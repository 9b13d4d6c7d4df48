"""Text normalization used for exact duplicate matching."""

from event_conflict.preprocessing.normalizer import (
    fold_diacritics,
    load_city_aliases,
    make_city_normalizer,
    normalize_city,
    normalize_text,
)

__all__ = [
    "fold_diacritics",
    "load_city_aliases",
    "make_city_normalizer",
    "normalize_city",
    "normalize_text",
]
