"""Slug helpers shared by menus, categories, tags and posts."""

import re

_INVALID = re.compile(r"[^a-z0-9\s-]")
_SPACES = re.compile(r"\s+")
_DASHES = re.compile(r"-+")


def slugify(name: str, fallback: str = "") -> str:
    """Lowercase ``name``, drop punctuation and join words with single dashes.

    Names with no ASCII letters or digits (``"日本語"``) reduce to nothing;
    ``fallback`` is returned instead so stored slugs are never empty.
    """
    slug = _INVALID.sub("", name.lower())
    slug = _SPACES.sub("-", slug.strip())
    slug = _DASHES.sub("-", slug)
    return slug or fallback
