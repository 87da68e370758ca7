"""Placeholder image fingerprints.

Hashes are derived from the media identifier, not from pixel data. Two
uploads share a fingerprint when their identifiers share a suffix.
The suffix is encoded as UTF-8 before base64, so URIs with non-ASCII
characters are hashed like any other.
"""
import base64
import re
from typing import Optional

from .schemas import Media

HASH_LENGTH = 16
_SUFFIX_LENGTH = 20
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def generate_hash(uri: str) -> str:
    encoded = base64.b64encode(uri[-_SUFFIX_LENGTH:].encode("utf-8")).decode("ascii")
    return _NON_ALNUM.sub("", encoded)[:HASH_LENGTH]


def compare_hashes(h1: str, h2: str) -> float:
    """Fraction of position-wise matching characters over the longer hash."""
    if h1 == h2:
        return 1.0
    matches = sum(1 for a, b in zip(h1, h2) if a == b)
    return matches / max(len(h1), len(h2))


def is_duplicate_image(h1: str, h2: str, threshold: float = 0.8) -> bool:
    return compare_hashes(h1, h2) >= threshold


def media_hash(media: Media) -> Optional[str]:
    if media.phash:
        return media.phash
    if media.uri:
        return generate_hash(media.uri)
    return None
