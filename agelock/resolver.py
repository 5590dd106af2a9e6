"""
agelock Resolver

Turns an EncryptedReference into a store path holding verified plaintext.

State machine (strictly linear, no retries):

    START
      -> CACHE_CHECK          only when a hash is declared
           HIT  -> DONE       no identity lookup, no decryption
           MISS -> PURITY_CHECK
      -> PURITY_CHECK         no hash + pure mode -> FAIL
      -> IDENTITY_DISCOVERY   nothing usable -> FAIL
      -> FILE_CHECK           encrypted file missing -> FAIL
      -> DECRYPT              tool failure -> FAIL
      -> HASH_VERIFY          mismatch -> FAIL (nothing written)
      -> STORE_WRITE
      -> DONE                 hash printed if none was declared

The store write is the last step, so an attempt that stops anywhere before
it leaves nothing behind.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .config import ResolverSettings
from .decrypt import AgeDecryptor, DecryptionFailed, Decryptor
from .errors import (
    AgeLockError,
    ConfigurationError,
    ErrorKind,
    ResolutionFailure,
)
from .hashing import SHA256, Digest
from .identity import IDENTITY_ENV_VAR, IdentityDiscovery, discover_identities
from .logging_config import events, new_resolution_id, resolution_id_var
from .models import EncryptedReference
from .store import ContentStore, StoreError
from .store_path import derive_name, validate_store_name
from .verify import IntegrityCheck, mismatch_message, pin_message, verify_plaintext

logger = logging.getLogger("agelock")

DEFAULT_WHO = "resolveAge"


class ResolutionState(str, Enum):
    START = "START"
    CACHE_CHECK = "CACHE_CHECK"
    PURITY_CHECK = "PURITY_CHECK"
    IDENTITY_DISCOVERY = "IDENTITY_DISCOVERY"
    FILE_CHECK = "FILE_CHECK"
    DECRYPT = "DECRYPT"
    HASH_VERIFY = "HASH_VERIFY"
    STORE_WRITE = "STORE_WRITE"
    DONE = "DONE"


@dataclass(frozen=True)
class ResolvedArtifact:
    """Plaintext committed to the store."""
    store_path: str
    content_hash: Digest
    name: str
    cache_hit: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "store_path": self.store_path,
            "content_hash": self.content_hash.to_sri(),
            "name": self.name,
            "cache_hit": self.cache_hit,
        }


@dataclass(frozen=True)
class ResolutionResult:
    """
    Outcome of one resolution attempt.

    Exactly one of ``artifact`` and ``failure`` is set. ``state`` is the
    state in which the attempt finished (DONE on success, otherwise the
    state that failed).
    """
    state: ResolutionState
    artifact: Optional[ResolvedArtifact] = None
    failure: Optional[ResolutionFailure] = None
    integrity: Optional[IntegrityCheck] = None

    def ok(self) -> bool:
        return self.failure is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.failure.kind if self.failure else None

    def unwrap(self) -> ResolvedArtifact:
        """Return the artifact or raise the failure as an exception."""
        if self.failure is not None:
            raise self.failure.to_exception()
        return self.artifact

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "artifact": self.artifact.to_dict() if self.artifact else None,
            "failure": self.failure.to_dict() if self.failure else None,
            "integrity": self.integrity.to_dict() if self.integrity else None,
        }


class _Abort(Exception):
    def __init__(self, state: ResolutionState, kind: ErrorKind, message: str,
                 integrity: Optional[IntegrityCheck] = None):
        self.state = state
        self.failure = ResolutionFailure(kind, message)
        self.integrity = integrity
        super().__init__(message)


def no_identity_message(who: str, discovery: IdentityDiscovery, hash_locked: bool) -> str:
    msg = (
        f"{who}: no usable identity found. {discovery.describe()}. "
        f"Set {IDENTITY_ENV_VAR} or ensure a key exists at a default path."
    )
    if hash_locked:
        msg += (
            " The hash-locked store path is not present and no identity was found to decrypt."
            " You may need to run an initial impure evaluation on a machine with the identity,"
            " or populate the store path via substitution."
        )
    return msg


class AgeResolver:
    """
    Resolves encrypted references into content-addressed store paths.

    Usage:
        resolver = AgeResolver(store=LocalStore("~/.cache/agelock/store"))
        result = resolver.resolve(EncryptedReference.of("secret.json.age"))
        if result.ok():
            path = result.artifact.store_path
        else:
            print(result.failure.message)

    The resolver holds no per-call state; one instance may serve concurrent
    resolutions.
    """

    def __init__(
        self,
        store: ContentStore,
        decryptor: Optional[Decryptor] = None,
        settings: Optional[ResolverSettings] = None,
        identity_discovery: Optional[Callable[[], IdentityDiscovery]] = None,
    ):
        self.settings = settings or ResolverSettings()
        self.store = store
        self.decryptor = decryptor or AgeDecryptor(self.settings.age_path)
        self.identity_discovery = identity_discovery or discover_identities

    def resolve(self, reference: EncryptedReference, who: str = DEFAULT_WHO) -> ResolutionResult:
        """
        Run one resolution attempt.

        Failures of the resolution itself are returned, not raised. A
        StoreError from the store collaborator while writing propagates.
        """
        token = None
        if not resolution_id_var.get():
            token = resolution_id_var.set(new_resolution_id())
        try:
            return self._resolve(reference, who)
        except _Abort as abort:
            events.failed(str(reference.file), abort.failure.kind.value, abort.failure.message)
            return ResolutionResult(state=abort.state, failure=abort.failure, integrity=abort.integrity)
        except AgeLockError as e:
            events.failed(str(reference.file), e.kind.value, e.message)
            return ResolutionResult(state=ResolutionState.START, failure=ResolutionFailure.from_exception(e))
        finally:
            if token is not None:
                resolution_id_var.reset(token)

    def _resolve(self, reference: EncryptedReference, who: str) -> ResolutionResult:
        expected = reference.expected_hash
        file = str(reference.file)
        events.request(who, file, expected.to_sri() if expected else None, self.settings.mode.value)

        if expected is not None and expected.algorithm != SHA256:
            raise ConfigurationError(f"{who} only supports SHA-256 hashes")

        name = derive_name(reference.file)
        validate_store_name(name)

        if expected is not None:
            artifact = self._cache_check(file, name, expected)
            if artifact is not None:
                return ResolutionResult(state=ResolutionState.DONE, artifact=artifact)
        elif self.settings.pure:
            raise _Abort(
                ResolutionState.PURITY_CHECK,
                ErrorKind.PURITY,
                f"{who} requires 'hash' in pure evaluation mode. "
                "Run with '--impure' for first-time decryption, "
                "then add the printed hash to your expression.",
            )

        discovery = self.identity_discovery()
        identities = discovery.usable
        if not identities:
            raise _Abort(
                ResolutionState.IDENTITY_DISCOVERY,
                ErrorKind.IDENTITY,
                no_identity_message(who, discovery, hash_locked=expected is not None),
            )

        encrypted_path = os.path.abspath(file)
        if not os.path.exists(encrypted_path):
            raise _Abort(
                ResolutionState.FILE_CHECK,
                ErrorKind.INPUT,
                f"{who}: file '{file}' does not exist. "
                "If you are using flakes, ensure the file has been added to git.",
            )

        try:
            plaintext = self.decryptor.decrypt(identities, encrypted_path)
        except DecryptionFailed as e:
            raise _Abort(
                ResolutionState.DECRYPT,
                ErrorKind.TOOL,
                f"{who}: age failed to decrypt '{file}': {e}",
            ) from e
        events.decrypted(file, len(identities), len(plaintext))

        check = verify_plaintext(plaintext, expected)
        if not check.may_store():
            raise _Abort(
                ResolutionState.HASH_VERIFY,
                ErrorKind.INTEGRITY,
                mismatch_message(who, file, check),
                integrity=check,
            )

        store_path = self.store.write_from_stream(plaintext, name, check.actual, repair=self.settings.repair)
        events.stored(file, store_path, check.actual.to_sri())

        if expected is None:
            events.unpinned(file, check.actual.to_sri())
            logger.warning(pin_message(who, file, check.actual))

        return ResolutionResult(
            state=ResolutionState.DONE,
            artifact=ResolvedArtifact(store_path, check.actual, name),
            integrity=check,
        )

    def _cache_check(self, file: str, name: str, expected: Digest) -> Optional[ResolvedArtifact]:
        path = self.store.compute_path(name, expected)
        try:
            present = self.store.ensure_present(path)
        except StoreError as e:
            logger.debug("presence check for %s failed: %s", path, e)
            present = False
        if not present:
            events.cache_miss(file, path)
            return None
        events.cache_hit(file, path)
        return ResolvedArtifact(path, expected, name, cache_hit=True)


def resolve_age(
    reference: EncryptedReference,
    store: ContentStore,
    decryptor: Optional[Decryptor] = None,
    settings: Optional[ResolverSettings] = None,
    who: str = DEFAULT_WHO,
) -> ResolvedArtifact:
    """
    Resolve a reference, raising on failure.

    Raises:
        AgeLockError subclass matching the failure kind
    """
    return AgeResolver(store, decryptor=decryptor, settings=settings).resolve(reference, who).unwrap()
