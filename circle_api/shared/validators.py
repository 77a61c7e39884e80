"""Shared validation utilities"""

import re
import secrets
import string
import uuid
from typing import Optional

SLUG_SUFFIX_LENGTH = 6
_SLUG_ALPHABET = string.ascii_lowercase + string.digits


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def slugify(name: str) -> str:
    """
    Reduce a display name to lowercase words joined by single hyphens.

    Everything except a-z, 0-9, spaces and hyphens is dropped.
    """
    slug = name.lower()
    slug = re.sub(r"[^a-z0-9 -]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def generate_slug(name: str) -> str:
    """
    Build a URL-safe circle slug: slugified name plus a random suffix.

    Args:
        name: Circle display name

    Returns:
        Slug such as "book-club-x7k2q9"; names with no usable characters
        yield only the suffix
    """
    suffix = "".join(secrets.choice(_SLUG_ALPHABET) for _ in range(SLUG_SUFFIX_LENGTH))
    base = slugify(name)
    return f"{base}-{suffix}" if base else suffix


def validate_display_name(value: Optional[str], max_length: int) -> str:
    """
    Validate a required, human-readable name.

    Raises:
        ValueError: If the name is blank or too long
    """
    if value is None or not value.strip():
        raise ValueError("Name is required")

    value = value.strip()
    if len(value) > max_length:
        raise ValueError(f"Name exceeds maximum length of {max_length} characters")

    return value
