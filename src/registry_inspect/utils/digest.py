"""Digest calculation and validation utilities."""

import hashlib
import re
from typing import Union

# Content addresses accepted in references and manifests
DIGEST_PATTERN = re.compile(r"^sha256:[0-9a-f]{64}$")


def calculate_digest(data: Union[bytes, bytearray], algorithm: str = "sha256") -> str:
    """Calculate digest of data.

    Args:
        data: Data to hash
        algorithm: Hash algorithm (default: sha256)

    Returns:
        Digest string in format "algorithm:hex"

    Raises:
        ValueError: If algorithm is not supported
        ValueError: If data is not bytes-like
    """
    if not isinstance(data, (bytes, bytearray)):
        raise ValueError("Data must be bytes or bytearray")

    if algorithm not in hashlib.algorithms_available:
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    hasher = hashlib.new(algorithm)
    hasher.update(data)
    return f"{algorithm}:{hasher.hexdigest()}"


def validate_digest(digest: str) -> bool:
    """Validate digest format.

    Args:
        digest: Digest string to validate

    Returns:
        True if digest is ``sha256:`` followed by 64 lowercase hex chars
    """
    if not isinstance(digest, str):
        return False

    return DIGEST_PATTERN.match(digest) is not None


def digest_hex(digest: str) -> str:
    """Return the hex part of an ``algorithm:hex`` digest."""
    return digest.split(":", 1)[-1]
