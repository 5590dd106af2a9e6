"""
agelock

Evaluation-time decryption of age-encrypted files into a content-addressed
store.

An encrypted file plus an optional SHA-256 of its plaintext resolves to a
store path. With a declared hash whose store path already exists (locally
or via a substituter) nothing is decrypted, so pure evaluations can use
secrets. Without a hash, impure mode is required; the content is decrypted,
stored, and its hash printed so it can be pinned.

Usage:
    from agelock import AgeResolver, LocalStore, ResolverSettings, read_age

    settings = ResolverSettings.from_env()
    resolver = AgeResolver(store=settings.build_store(), settings=settings)

    text = read_age(resolver, {"file": "secrets/token.txt.age",
                               "hash": "sha256-..."})
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    ErrorKind,
    AgeLockError,
    ConfigurationError,
    PurityError,
    IdentityError,
    InputError,
    ToolError,
    IntegrityError,
    RepresentationError,
    ResolutionFailure,
)

# Hashing and store paths
from .hashing import Digest, parse_hash, sha256_digest
from .store_path import derive_name, make_fixed_output_path

# Collaborators
from .identity import (
    Accessibility,
    IdentityCandidate,
    IdentityDiscovery,
    discover_identities,
)
from .decrypt import Decryptor, AgeDecryptor, DecryptionFailed
from .store import ContentStore, MemoryStore, LocalStore, NixStore, StoreError, get_store
from .verify import IntegrityCheck, IntegrityOutcome, verify_plaintext

# Resolution
from .config import EvaluationMode, ResolverSettings
from .models import AgeRequest, EncryptedReference, parse_request
from .resolver import (
    AgeResolver,
    ResolutionResult,
    ResolutionState,
    ResolvedArtifact,
    resolve_age,
)

# Output forms
from .primops import (
    DocumentEvaluator,
    DocumentEvaluationError,
    JsonDocumentEvaluator,
    NixDocumentEvaluator,
    read_age,
    import_age,
)


__all__ = [
    "__version__",

    # Errors
    "ErrorKind",
    "AgeLockError",
    "ConfigurationError",
    "PurityError",
    "IdentityError",
    "InputError",
    "ToolError",
    "IntegrityError",
    "RepresentationError",
    "ResolutionFailure",

    # Hashing
    "Digest",
    "parse_hash",
    "sha256_digest",
    "derive_name",
    "make_fixed_output_path",

    # Identity
    "Accessibility",
    "IdentityCandidate",
    "IdentityDiscovery",
    "discover_identities",

    # Decryption
    "Decryptor",
    "AgeDecryptor",
    "DecryptionFailed",

    # Storage
    "ContentStore",
    "MemoryStore",
    "LocalStore",
    "NixStore",
    "StoreError",
    "get_store",

    # Verification
    "IntegrityCheck",
    "IntegrityOutcome",
    "verify_plaintext",

    # Resolution
    "EvaluationMode",
    "ResolverSettings",
    "AgeRequest",
    "EncryptedReference",
    "parse_request",
    "AgeResolver",
    "ResolutionResult",
    "ResolutionState",
    "ResolvedArtifact",
    "resolve_age",

    # Output forms
    "DocumentEvaluator",
    "DocumentEvaluationError",
    "JsonDocumentEvaluator",
    "NixDocumentEvaluator",
    "read_age",
    "import_age",
]
