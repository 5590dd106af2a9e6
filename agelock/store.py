"""
agelock Content-Addressed Storage

The resolver consumes a narrow storage interface:

    compute_path(name, digest)  -> deterministic store path
    ensure_present(path)        -> True if present locally or substituted
    write_from_stream(data, name, digest, repair) -> canonical store path

Implementations:
- MemoryStore: in-process dict, for tests and embedding
- LocalStore: a directory of read-only files, with optional substituter
  directories that are consulted when a path is missing
- NixStore: drives the nix-store command line against a real Nix store
"""

import logging
import os
import shutil
import subprocess
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from .hashing import Digest, sha256_digest
from .store_path import make_fixed_output_path, validate_store_name

logger = logging.getLogger(__name__)

DEFAULT_NIX_STORE_DIR = "/nix/store"


class StoreError(Exception):
    """Raised by store implementations when an operation cannot complete."""


def split_store_path(path: str):
    """Return (store_dir, name) for "<store_dir>/<hash>-<name>"."""
    store_dir, _, base = path.rstrip("/").rpartition("/")
    _, sep, name = base.partition("-")
    if not sep or not name:
        raise StoreError(f"'{path}' is not a store path")
    return store_dir, name


class ContentStore(ABC):
    """
    Abstract interface for content-addressed storage.

    compute_path must be a pure function of (name, digest). ensure_present
    may fetch from a remote cache. write_from_stream must be idempotent:
    writing the same bytes twice yields the same path.
    """

    store_dir: str

    def compute_path(self, name: str, digest: Digest) -> str:
        return make_fixed_output_path(self.store_dir, name, digest)

    @abstractmethod
    def ensure_present(self, path: str) -> bool:
        """Make ``path`` valid locally if possible. Returns False on a miss."""
        pass

    @abstractmethod
    def write_from_stream(self, data: bytes, name: str, digest: Digest, repair: bool = False) -> str:
        """Add flat content to the store and return its store path."""
        pass

    def read_bytes(self, path: str) -> bytes:
        """Read the content of a store path."""
        with open(path, "rb") as f:
            return f.read()

    def _check_digest(self, data: bytes, digest: Digest) -> None:
        actual = sha256_digest(data)
        if actual != digest:
            raise StoreError(f"content hash {actual.to_sri()} does not match declared {digest.to_sri()}")


class MemoryStore(ContentStore):
    """
    In-memory store for development/testing.

    ``remote`` plays the part of a binary cache: ensure_present copies from
    it on a local miss. Call counters let tests assert which operations ran.
    """

    def __init__(self, store_dir: str = DEFAULT_NIX_STORE_DIR, remote: Optional[Dict[str, bytes]] = None):
        self.store_dir = store_dir
        self.remote: Dict[str, bytes] = dict(remote or {})
        self._objects: Dict[str, bytes] = {}
        self._lock = threading.Lock()
        self.ensure_calls: List[str] = []
        self.write_calls: List[str] = []

    def ensure_present(self, path: str) -> bool:
        with self._lock:
            self.ensure_calls.append(path)
            if path in self._objects:
                return True
            if path in self.remote:
                self._objects[path] = self.remote[path]
                return True
            return False

    def write_from_stream(self, data: bytes, name: str, digest: Digest, repair: bool = False) -> str:
        self._check_digest(data, digest)
        path = self.compute_path(name, digest)
        with self._lock:
            self.write_calls.append(path)
            if repair or path not in self._objects:
                self._objects[path] = bytes(data)
        return path

    def read_bytes(self, path: str) -> bytes:
        with self._lock:
            try:
                return self._objects[path]
            except KeyError:
                raise StoreError(f"path '{path}' is not in the store") from None

    def corrupt(self, path: str, data: bytes) -> None:
        """Overwrite an entry in place, bypassing hashing."""
        with self._lock:
            self._objects[path] = data

    def __contains__(self, path: str) -> bool:
        with self._lock:
            return path in self._objects

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)


class LocalStore(ContentStore):
    """
    Directory-backed store.

    Entries are read-only files named like Nix store paths. Substituters
    are directories holding entries under the same base names (for example
    a synced copy of another machine's store); a substituted entry is only
    accepted if its content hashes back to the requested path.
    """

    def __init__(self, store_dir: str, substituters: Iterable[str] = ()):
        self.store_dir = os.path.abspath(os.path.expanduser(store_dir))
        self.substituters = [os.path.abspath(os.path.expanduser(s)) for s in substituters if s]

    def ensure_present(self, path: str) -> bool:
        if os.path.isfile(path):
            return True
        base = os.path.basename(path)
        for sub in self.substituters:
            candidate = os.path.join(sub, base)
            if not os.path.isfile(candidate):
                continue
            with open(candidate, "rb") as f:
                data = f.read()
            _, name = split_store_path(path)
            if self.compute_path(name, sha256_digest(data)) != path:
                logger.warning("substituter %s has corrupt entry %s, ignoring", sub, base)
                continue
            self._commit(path, data)
            logger.debug("substituted %s from %s", path, sub)
            return True
        return False

    def write_from_stream(self, data: bytes, name: str, digest: Digest, repair: bool = False) -> str:
        validate_store_name(name)
        self._check_digest(data, digest)
        path = self.compute_path(name, digest)
        if os.path.isfile(path):
            if not repair:
                return path
            if sha256_digest(self.read_bytes(path)) == digest:
                return path
            logger.warning("repairing corrupted store path %s", path)
        self._commit(path, data)
        return path

    def _commit(self, path: str, data: bytes) -> None:
        # Temp file then rename: readers never see a partial entry.
        os.makedirs(self.store_dir, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.store_dir, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(tmp, 0o444)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


class NixStore(ContentStore):
    """
    Store backed by a real Nix installation.

    ensure_present runs ``nix-store --realise`` (which consults the configured
    substituters); writes use ``nix-store --add-fixed sha256``, which performs
    flat ingestion unless --recursive is given.
    """

    def __init__(self, store_dir: str = DEFAULT_NIX_STORE_DIR, nix_store_bin: str = "nix-store"):
        self.store_dir = store_dir
        self.nix_store_bin = nix_store_bin

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run([self.nix_store_bin, *args], capture_output=True)
        except OSError as e:
            raise StoreError(f"could not run {self.nix_store_bin}: {e}") from e

    def ensure_present(self, path: str) -> bool:
        proc = self._run(["--realise", path])
        if proc.returncode != 0:
            logger.debug("nix-store --realise %s failed: %s", path,
                         proc.stderr.decode("utf-8", errors="replace").strip())
            return False
        return True

    def write_from_stream(self, data: bytes, name: str, digest: Digest, repair: bool = False) -> str:
        validate_store_name(name)
        self._check_digest(data, digest)
        expected = self.compute_path(name, digest)
        tmpdir = tempfile.mkdtemp(prefix="agelock-")
        try:
            src = os.path.join(tmpdir, name)
            with open(src, "wb") as f:
                f.write(data)
            args = ["--add-fixed", "sha256"]
            if repair:
                args.append("--repair")
            proc = self._run(args + [src])
        finally:
            shutil.rmtree(tmpdir, ignore_errors=True)

        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise StoreError(f"nix-store --add-fixed failed: {stderr}")
        path = proc.stdout.decode("utf-8").strip()
        if path != expected:
            raise StoreError(f"nix-store returned '{path}', expected '{expected}'")
        return path


def get_store(
    store_type: str = "local",
    store_dir: Optional[str] = None,
    substituters: Iterable[str] = (),
) -> ContentStore:
    """
    Factory function to create the configured store.

    Args:
        store_type: "local", "nix" or "memory"
        store_dir: store root (default /nix/store for "nix" and "memory")
        substituters: substituter directories (LocalStore only)
    """
    if store_type == "nix":
        return NixStore(store_dir=store_dir or DEFAULT_NIX_STORE_DIR)
    if store_type == "memory":
        return MemoryStore(store_dir=store_dir or DEFAULT_NIX_STORE_DIR)
    if store_type == "local":
        if not store_dir:
            raise StoreError("a store directory is required for the local store")
        return LocalStore(store_dir=store_dir, substituters=substituters)
    raise StoreError(f"unknown store type '{store_type}'")
