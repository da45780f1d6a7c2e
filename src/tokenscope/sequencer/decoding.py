"""
Token Byte Decoding

Infers the byte encoding of a captured token so that entropy estimators run on
the generator's native output rather than on its printable representation.
"""

import base64
import binascii
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np


HEX_PATTERN = re.compile(r"^[0-9a-fA-F]+$")
WHITESPACE = re.compile(r"\s+")
URL_SAFE_CHARS = re.compile(r"[-_]")


class TokenEncoding(str, Enum):
    """Byte encodings recognised by the decoder."""

    HEX = "hex"
    BASE64 = "base64"
    BASE64_URL = "base64url"
    RAW = "raw"


def bytes_to_bits(data: bytes) -> np.ndarray:
    """Expand bytes into a read-only MSB-first bit array."""
    bits = np.unpackbits(np.frombuffer(data, dtype=np.uint8))
    bits.flags.writeable = False
    return bits


def raw_string_bits(token: str) -> np.ndarray:
    """
    Bit stream of the printable token text.

    Each UTF-16 code unit contributes its low 8 bits, MSB first, so a
    character outside the BMP yields two bytes (one per surrogate). This is
    the basis of the SP 800-22 battery and deliberately ignores decoding.
    """
    units = token.encode("utf-16-le", "surrogatepass")
    # little-endian: the low byte of each code unit comes first
    bits = np.unpackbits(np.frombuffer(units[0::2], dtype=np.uint8))
    bits.flags.writeable = False
    return bits


@dataclass(frozen=True)
class DecodedToken:
    """Decoded byte form of a token."""

    data: bytes
    encoding: TokenEncoding

    @property
    def bits(self) -> np.ndarray:
        """MSB-first bit sequence, 8 bits per byte."""
        return bytes_to_bits(self.data)

    @property
    def bit_length(self) -> int:
        return len(self.data) * 8


class ByteDecoder:
    """
    Guesses a token's underlying byte representation.

    Attempts, in order: dot-segmented base64/base64url (JWT style), even-length
    hex, whole-string base64/base64url, and finally raw UTF-8. Decoding never
    fails.
    """

    def decode(self, token: str) -> DecodedToken:
        """
        Decode a token to bytes.

        Args:
            token: Raw token string

        Returns:
            DecodedToken with the decoded bytes and the encoding that matched
        """
        segmented = self._try_segmented(token)
        if segmented is not None:
            return segmented

        hex_bytes = self._try_hex(token)
        if hex_bytes is not None:
            return DecodedToken(hex_bytes, TokenEncoding.HEX)

        b64 = self._try_base64(token)
        if b64 is not None:
            return DecodedToken(*b64)

        return DecodedToken(token.encode("utf-8", errors="surrogatepass"), TokenEncoding.RAW)

    def _try_segmented(self, token: str) -> Optional[DecodedToken]:
        """Decode dot-delimited tokens segment by segment."""
        if "." not in token:
            return None

        parts = [p for p in token.split(".") if p]
        if len(parts) < 2:
            return None

        chunks = []
        encoding = TokenEncoding.BASE64
        for part in parts:
            decoded = self._try_base64(part)
            if decoded is None:
                return None
            data, kind = decoded
            chunks.append(data)
            if kind == TokenEncoding.BASE64_URL:
                encoding = TokenEncoding.BASE64_URL

        return DecodedToken(b"".join(chunks), encoding)

    def _try_hex(self, token: str) -> Optional[bytes]:
        clean = WHITESPACE.sub("", token)
        if not clean or not HEX_PATTERN.fullmatch(clean) or len(clean) % 2:
            return None
        return bytes.fromhex(clean)

    def _try_base64(self, token: str) -> Optional[Tuple[bytes, TokenEncoding]]:
        """Try the url-safe normalised form first, then the text as given."""
        if not token:
            return None

        kind = (
            TokenEncoding.BASE64_URL if URL_SAFE_CHARS.search(token) else TokenEncoding.BASE64
        )
        normalised = token.replace("-", "+").replace("_", "/")
        padding = len(normalised) % 4
        if padding:
            normalised += "=" * (4 - padding)

        for candidate, candidate_kind in ((normalised, kind), (token, TokenEncoding.BASE64)):
            try:
                return base64.b64decode(candidate, validate=True), candidate_kind
            except (binascii.Error, ValueError):
                continue
        return None


_default_decoder = ByteDecoder()


def decode_token(token: str) -> DecodedToken:
    """Decode a token with the shared stateless decoder."""
    return _default_decoder.decode(token)
