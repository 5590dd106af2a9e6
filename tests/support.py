"""Test doubles shared by the agelock test suite."""

import os
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from agelock.decrypt import DecryptionFailed, Decryptor
from agelock.identity import Accessibility, IdentityCandidate, IdentityDiscovery
from agelock.store import MemoryStore, StoreError


class FakeDecryptor(Decryptor):
    """
    Deterministic stand-in for age.

    Maps encrypted file paths (absolute) to plaintext. Every call is
    recorded; ``fail`` makes every call raise DecryptionFailed.
    """

    def __init__(self, plaintexts: Optional[Dict[str, bytes]] = None, fail: Optional[str] = None):
        self.plaintexts = {os.path.abspath(k): v for k, v in (plaintexts or {}).items()}
        self.fail = fail
        self.calls: List[Tuple[Tuple[str, ...], str]] = []

    def decrypt(self, identities: Sequence[str], path: str) -> bytes:
        self.calls.append((tuple(identities), path))
        if self.fail is not None:
            raise DecryptionFailed(self.fail)
        try:
            return self.plaintexts[path]
        except KeyError:
            raise DecryptionFailed(f"no identity matched any of the recipients of {path}") from None


class RecordingProbe:
    """Identity probe that logs every path it is asked about."""

    def __init__(self, states: Optional[Dict[str, Accessibility]] = None,
                 default: Accessibility = Accessibility.NOT_FOUND):
        self.states = dict(states or {})
        self.default = default
        self.accessed: List[str] = []

    def __call__(self, path: str) -> Accessibility:
        self.accessed.append(path)
        return self.states.get(path, self.default)


class CountingDiscovery:
    """identity_discovery callable returning a fixed result and counting calls."""

    def __init__(self, usable: Sequence[str] = ("/keys/test.key",)):
        self.discovery = IdentityDiscovery(
            candidates=[IdentityCandidate(p, Accessibility.FOUND) for p in usable]
        )
        self.calls = 0

    def __call__(self) -> IdentityDiscovery:
        self.calls += 1
        return self.discovery


class FailingPresenceStore(MemoryStore):
    """MemoryStore whose presence check always errors, as an unreachable cache would."""

    def ensure_present(self, path: str) -> bool:
        self.ensure_calls.append(path)
        raise StoreError("substituter unreachable")


def write_encrypted(tmp_path, name: str, ciphertext: bytes = b"age-encryption.org/v1\n") -> str:
    """Create a stand-in encrypted file and return its absolute path."""
    path = tmp_path / name
    path.write_bytes(ciphertext)
    return str(path)


needs_sh = pytest.mark.skipif(not os.path.exists("/bin/sh"), reason="requires /bin/sh")

# Fake age that prints the (already plain) input file, ignoring identities.
CAT_LAST_ARG = 'for last; do :; done\nexec cat "$last"\n'


def write_script(tmp_path, name: str, script: str) -> str:
    """Write an executable shell script standing in for an external tool."""
    path = tmp_path / name
    path.write_text("#!/bin/sh\n" + script)
    path.chmod(0o755)
    return str(path)


def write_fake_age(tmp_path, script: str) -> str:
    return write_script(tmp_path, "fake-age", script)
