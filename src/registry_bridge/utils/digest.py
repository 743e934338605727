"""Content digest helpers for blobs and manifests."""

import hashlib
import re
from typing import Union

# algorithm:hex
DIGEST_PATTERN = re.compile(r"^([a-z0-9]+):([a-f0-9]+)$")

SUPPORTED_ALGORITHMS = {"sha256": 64, "sha512": 128}


def calculate_digest(data: Union[bytes, bytearray], algorithm: str = "sha256") -> str:
    """Calculate the registry digest of some content.

    Args:
        data: Content to hash
        algorithm: Hash algorithm (default: sha256)

    Returns:
        Digest string in format "algorithm:hex"

    Raises:
        ValueError: If algorithm is not supported or data is not bytes-like
    """
    if not isinstance(data, (bytes, bytearray)):
        raise ValueError("Data must be bytes or bytearray")

    if algorithm not in SUPPORTED_ALGORITHMS:
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    return f"{algorithm}:{hashlib.new(algorithm, data).hexdigest()}"


def validate_digest(digest: str) -> bool:
    """Check that a digest is well formed for a supported algorithm."""
    if not isinstance(digest, str):
        return False

    match = DIGEST_PATTERN.match(digest)
    if not match:
        return False

    algorithm, hex_part = match.groups()
    return SUPPORTED_ALGORITHMS.get(algorithm) == len(hex_part)


def verify_digest(data: Union[bytes, bytearray], expected_digest: str) -> bool:
    """Verify content against the digest it is addressed by.

    Raises:
        ValueError: If the digest format is invalid
    """
    if not validate_digest(expected_digest):
        raise ValueError(f"Invalid digest format: {expected_digest}")

    algorithm, _ = expected_digest.split(":", 1)
    return calculate_digest(data, algorithm) == expected_digest
