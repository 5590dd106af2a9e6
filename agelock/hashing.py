"""
agelock Hashing

Content digests and their text forms.

The canonical text form is SRI ("sha256-<base64>"). Expected hashes may also
be written with an "<algo>:" prefix or as a bare SHA-256 in base16, Nix base32
or base64. Nix base32 uses its own alphabet (no e, o, t, u) and encodes the
digest least-significant bits first.
"""

import base64
import binascii
import hashlib
import re
from dataclasses import dataclass
from typing import Optional, Union

from .errors import ConfigurationError

SHA256 = "sha256"

# Digest sizes in bytes for every algorithm we can recognise in a hash string.
HASH_SIZES = {
    "md5": 16,
    "sha1": 20,
    "sha256": 32,
    "sha512": 64,
}

NIX_BASE32_CHARS = "0123456789abcdfghijklmnpqrsvwxyz"

SRI_PATTERN = re.compile(r'^([a-z0-9]+)-([A-Za-z0-9+/]+={0,2})$')
PREFIXED_PATTERN = re.compile(r'^([a-z0-9]+):(.+)$')


def nix_base32_len(size: int) -> int:
    return (size * 8 - 1) // 5 + 1


def nix_base32_encode(data: bytes) -> str:
    """Encode bytes with the Nix base32 alphabet."""
    size = len(data)
    out = []
    for n in range(nix_base32_len(size) - 1, -1, -1):
        b = n * 5
        i = b // 8
        j = b % 8
        c = data[i] >> j
        if i + 1 < size:
            c |= data[i + 1] << (8 - j)
        out.append(NIX_BASE32_CHARS[c & 0x1f])
    return "".join(out)


def nix_base32_decode(text: str, size: int) -> bytes:
    """Decode Nix base32 text into exactly ``size`` bytes."""
    if len(text) != nix_base32_len(size):
        raise ValueError(f"invalid base32 length {len(text)} for {size} bytes")
    out = bytearray(size)
    for n, ch in enumerate(reversed(text)):
        digit = NIX_BASE32_CHARS.find(ch)
        if digit < 0:
            raise ValueError(f"invalid base32 character '{ch}'")
        b = n * 5
        i = b // 8
        j = b % 8
        out[i] |= (digit << j) & 0xff
        carry = digit >> (8 - j)
        if i + 1 < size:
            out[i + 1] |= carry
        elif carry:
            raise ValueError("invalid base32 string")
    return bytes(out)


@dataclass(frozen=True)
class Digest:
    """A content digest: algorithm name plus raw digest bytes."""
    algorithm: str
    digest: bytes

    def hex(self) -> str:
        return self.digest.hex()

    def base32(self) -> str:
        return nix_base32_encode(self.digest)

    def to_sri(self) -> str:
        return f"{self.algorithm}-{base64.b64encode(self.digest).decode('ascii')}"

    def to_base16(self) -> str:
        """Prefixed base16 form, as used inside store path fingerprints."""
        return f"{self.algorithm}:{self.hex()}"

    def __str__(self) -> str:
        return self.to_sri()


def sha256_digest(data: Union[bytes, str]) -> Digest:
    """SHA-256 over the full byte stream."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return Digest(SHA256, hashlib.sha256(data).digest())


def _decode_digest(algorithm: str, text: str) -> bytes:
    size = HASH_SIZES[algorithm]
    if len(text) == size * 2:
        return bytes.fromhex(text)
    if len(text) == nix_base32_len(size):
        return nix_base32_decode(text, size)
    raw = base64.b64decode(text, validate=True)
    if len(raw) != size:
        raise ValueError(f"expected {size} bytes, got {len(raw)}")
    return raw


def parse_hash(text: Optional[str], default_algorithm: str = SHA256) -> Optional[Digest]:
    """
    Parse an expected-hash string.

    Returns None for None or the empty string. The algorithm is not
    restricted here; the resolver rejects anything but SHA-256 before doing
    any other work.

    Raises:
        ConfigurationError: if the text is not a well-formed hash
    """
    if not text:
        return None

    algorithm = default_algorithm
    body = text
    sri = SRI_PATTERN.match(text)
    prefixed = PREFIXED_PATTERN.match(text)
    if sri:
        algorithm, body = sri.group(1), sri.group(2)
    elif prefixed:
        algorithm, body = prefixed.group(1), prefixed.group(2)

    if algorithm not in HASH_SIZES:
        raise ConfigurationError(f"unknown hash algorithm '{algorithm}' in hash '{text}'")

    try:
        if sri:
            raw = base64.b64decode(body, validate=True)
            if len(raw) != HASH_SIZES[algorithm]:
                raise ValueError("wrong digest length")
        else:
            raw = _decode_digest(algorithm, body)
    except (ValueError, binascii.Error) as e:
        raise ConfigurationError(f"invalid {algorithm} hash '{text}': {e}") from e

    return Digest(algorithm, raw)
