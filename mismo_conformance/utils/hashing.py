"""
Deterministic content hashing of generated and received documents.
"""

import hashlib

HASH_ALGORITHM = "sha256"
HASH_PREFIX = f"{HASH_ALGORITHM}:"


def content_hash(xml_bytes: bytes) -> str:
    """
    Hash the exact bytes of an artifact.

    Args:
        xml_bytes: Document bytes as stored or transmitted

    Returns:
        "sha256:<hex digest>"

    Raises:
        TypeError: If given text instead of bytes
    """
    if not isinstance(xml_bytes, (bytes, bytearray, memoryview)):
        raise TypeError(f"content_hash requires bytes, got {type(xml_bytes).__name__}")
    return HASH_PREFIX + hashlib.new(HASH_ALGORITHM, bytes(xml_bytes)).hexdigest()


def is_duplicate(hash_a: str | None, hash_b: str | None) -> bool:
    """True when two hashes are present and identical."""
    return bool(hash_a) and hash_a == hash_b


def verify(xml_bytes: bytes, expected_hash: str) -> bool:
    """Check an artifact against a previously recorded hash."""
    return is_duplicate(content_hash(xml_bytes), expected_hash)
