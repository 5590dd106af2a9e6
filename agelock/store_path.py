"""
agelock Store Paths

Deterministic store locations for flat, SHA-256 addressed content.

The computation matches Nix fixed-output paths with flat ingestion, so a
LocalStore and a real /nix/store agree on where a given (name, hash) lives:

    inner       = SHA-256("fixed:out:sha256:<hex>:")
    fingerprint = "output:out:sha256:<inner hex>:<store_dir>:<name>"
    path        = <store_dir>/<base32(fold20(SHA-256(fingerprint)))>-<name>

The result depends only on (store_dir, name, digest).
"""

import hashlib
import os
import re
from pathlib import PurePath
from typing import Union

from .errors import ConfigurationError
from .hashing import Digest, SHA256, nix_base32_encode

AGE_SUFFIX = ".age"
DEFAULT_NAME = "source"
STORE_PATH_HASH_BYTES = 20
MAX_NAME_LENGTH = 211

NAME_PATTERN = re.compile(r'^[A-Za-z0-9+\-._?=]+$')


def compress_hash(digest: bytes, size: int = STORE_PATH_HASH_BYTES) -> bytes:
    """Fold a digest into ``size`` bytes by XOR."""
    out = bytearray(size)
    for i, b in enumerate(digest):
        out[i % size] ^= b
    return bytes(out)


def derive_name(file: Union[str, os.PathLike]) -> str:
    """
    Store name for an encrypted file: its base name without ".age".

    Falls back to "source" when the reference has no base name (e.g. "/").
    """
    base = PurePath(os.fspath(file)).name
    if not base:
        return DEFAULT_NAME
    if base.endswith(AGE_SUFFIX):
        base = base[:-len(AGE_SUFFIX)]
    return base


def validate_store_name(name: str) -> str:
    """
    Check that a name is usable as the name part of a store path.

    Raises:
        ConfigurationError: if the name is empty, too long, is "." or ".."
            (alone or before the first dash) or contains characters outside
            [A-Za-z0-9+-._?=]
    """
    if not name:
        raise ConfigurationError("store path name is empty")
    if len(name) > MAX_NAME_LENGTH:
        raise ConfigurationError(f"store path name '{name}' is longer than {MAX_NAME_LENGTH} characters")
    if name.split("-", 1)[0] in (".", ".."):
        raise ConfigurationError(f"store path name '{name}' cannot be '.' or '..' or start with '.-' or '..-'")
    if not NAME_PATTERN.match(name):
        raise ConfigurationError(f"store path name '{name}' contains a forbidden character")
    return name


def make_store_path(store_dir: str, path_type: str, inner: Digest, name: str) -> str:
    fingerprint = f"{path_type}:{inner.to_base16()}:{store_dir}:{name}"
    h = compress_hash(hashlib.sha256(fingerprint.encode('utf-8')).digest())
    return f"{store_dir}/{nix_base32_encode(h)}-{name}"


def make_fixed_output_path(store_dir: str, name: str, digest: Digest) -> str:
    """Store path for flat-ingested content with the given SHA-256 digest."""
    if digest.algorithm != SHA256:
        raise ConfigurationError(f"store paths require a SHA-256 digest, got {digest.algorithm}")
    validate_store_name(name)
    store_dir = store_dir.rstrip("/") or "/"
    inner = hashlib.sha256(f"fixed:out:{digest.to_base16()}:".encode('utf-8')).digest()
    return make_store_path(store_dir, "output:out", Digest(SHA256, inner), name)
