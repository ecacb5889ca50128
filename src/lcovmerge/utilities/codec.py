"""Codec - Base64 text encoding for line checksums.

Checksums are written to traces as standard base64 (``A-Z a-z 0-9 + /``
with ``=`` padding). Decoding is strict: anything that would not be
produced by :func:`encode` is rejected.
"""

from __future__ import annotations

import base64
import binascii
import re

# Zero, one or two trailing "=" are the only legal padding forms.
_BASE64_PATTERN = re.compile(r"(?:[A-Za-z0-9+/]{4})*(?:[A-Za-z0-9+/]{2}==|[A-Za-z0-9+/]{3}=)?")
_ALPHABET = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/=")


class CodecError(ValueError):
    """Raised when text is not valid base64."""


def encode(data: bytes) -> str:
    """Encode bytes to base64 text.

    Every 3 input bytes become 4 output characters; the result is padded
    with ``=`` to a multiple of 4.
    """
    return base64.b64encode(data).decode("ascii")


def decode(text: str) -> bytes:
    """Decode base64 text back to bytes.

    Args:
        text: Base64 text

    Returns:
        The decoded bytes

    Raises:
        CodecError: If the length is not a multiple of 4, a character is
            outside the alphabet, the padding is malformed, or the
            bits hidden by the padding are not zero
    """
    if len(text) % 4:
        raise CodecError(f"invalid base64 length: {len(text)}")

    bad = sorted({ch for ch in text if ch not in _ALPHABET})
    if bad:
        raise CodecError(f"invalid base64 character(s): {''.join(bad)!r}")

    if not _BASE64_PATTERN.fullmatch(text):
        raise CodecError("invalid base64 padding")

    try:
        data = base64.b64decode(text, validate=True)
    except binascii.Error as e:
        raise CodecError(str(e)) from e

    # Unused bits before the padding must be zero.
    if encode(data) != text:
        raise CodecError("non-canonical base64")
    return data
