"""Digest - Line content fingerprints for checksum validation.

Provides a streaming MD5 digest used to fingerprint individual source
lines. The result must match what other LCOV tools write into ``DA``
records, so the algorithm is fixed.
"""

from __future__ import annotations

import hashlib

DIGEST_LENGTH = 16


class LineDigest:
    """Streaming 128-bit MD5 digest.

    Usage:
        digest = LineDigest()
        digest.update(b"int main(void)\\n")
        value = digest.finalize()  # 16 bytes
    """

    def __init__(self) -> None:
        self._hash = hashlib.md5()

    def update(self, data: bytes) -> None:
        """Feed more bytes into the digest."""
        self._hash.update(data)

    def finalize(self) -> bytes:
        """Return the 16-byte digest of everything fed so far."""
        return self._hash.digest()


def compute_digest(data: bytes) -> bytes:
    """Compute the digest of a single byte sequence.

    Args:
        data: Raw bytes, typically one source line including its terminator

    Returns:
        16-byte MD5 digest
    """
    digest = LineDigest()
    digest.update(data)
    return digest.finalize()
