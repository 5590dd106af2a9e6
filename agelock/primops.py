"""
agelock Output Forms

Two operations share one resolver:

    read_age    decrypted content as a string
    import_age  decrypted content evaluated as a structured document

Both take a request mapping ``{"file": ..., "hash": ...}``.
"""

import json
import subprocess
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from .errors import ConfigurationError, RepresentationError
from .models import parse_request
from .resolver import AgeResolver, ResolvedArtifact

READ_AGE = "readAge"
IMPORT_AGE = "importAge"

READ_AGE_DOC = """
Decrypt an age-encrypted file and return its contents as a string.

*attrs* has the following fields:

- `file` (path, required): Path to the age-encrypted file.
- `hash` (string, optional): SRI hash (SHA-256) of the decrypted content.

When `hash` is provided and the corresponding store path exists, the result
is returned from cache with no decryption or identity needed, enabling pure
evaluation. Without `hash`, impure mode is required.
"""

IMPORT_AGE_DOC = """
Decrypt an age-encrypted document and return its evaluated contents.

*attrs* has the following fields:

- `file` (path, required): Path to the age-encrypted file.
- `hash` (string, optional): SRI hash (SHA-256) of the decrypted content.

When `hash` is provided and the corresponding store path exists, the result
is returned from cache with no decryption or identity needed, enabling pure
evaluation. Without `hash`, impure mode is required.
"""


class DocumentEvaluationError(Exception):
    """The host evaluator rejected decrypted content."""

    def __init__(self, message: str, trace: Optional[list] = None):
        super().__init__(message)
        self.message = message
        self.trace = list(trace or [])

    def add_trace(self, note: str) -> None:
        self.trace.append(note)

    def __str__(self) -> str:
        return "\n".join([self.message] + [f"… {t}" for t in self.trace])


class DocumentEvaluator(ABC):
    """Host evaluator for structured documents stored at a path."""

    @abstractmethod
    def evaluate(self, store_path: str, content: bytes) -> Any:
        pass


class JsonDocumentEvaluator(DocumentEvaluator):
    def evaluate(self, store_path: str, content: bytes) -> Any:
        try:
            return json.loads(content.decode("utf-8"), strict=False)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DocumentEvaluationError(f"'{store_path}' is not a valid JSON document: {e}") from e


class NixDocumentEvaluator(DocumentEvaluator):
    """Evaluates a Nix expression file with nix-instantiate and returns its JSON value."""

    def __init__(self, nix_instantiate_bin: str = "nix-instantiate"):
        self.nix_instantiate_bin = nix_instantiate_bin

    def evaluate(self, store_path: str, content: bytes) -> Any:
        cmd = [self.nix_instantiate_bin, "--eval", "--json", "--strict", store_path]
        try:
            proc = subprocess.run(cmd, capture_output=True)
        except OSError as e:
            raise DocumentEvaluationError(f"could not run {self.nix_instantiate_bin}: {e}") from e
        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise DocumentEvaluationError(f"evaluation of '{store_path}' failed: {stderr}")
        try:
            return json.loads(proc.stdout.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DocumentEvaluationError(f"evaluation of '{store_path}' did not produce JSON: {e}") from e


def _resolve(resolver: AgeResolver, attrs: Mapping[str, Any], who: str) -> ResolvedArtifact:
    reference = parse_request(attrs, who)
    return resolver.resolve(reference, who).unwrap()


def bytes_to_string(content: bytes) -> str:
    """Decode without loss; bytes that are not UTF-8 survive as surrogates."""
    return content.decode("utf-8", errors="surrogateescape")


def read_age(resolver: AgeResolver, attrs: Mapping[str, Any]) -> str:
    """
    Decrypted content as a string.

    Raises:
        RepresentationError: if the content contains a NUL byte
        AgeLockError: any resolution failure
    """
    artifact = _resolve(resolver, attrs, READ_AGE)
    content = resolver.store.read_bytes(artifact.store_path)
    if b"\0" in content:
        raise RepresentationError(
            f"{READ_AGE}: the decrypted contents of '{attrs['file']}' cannot be represented as a string"
        )
    return bytes_to_string(content)


def import_age(
    resolver: AgeResolver,
    attrs: Mapping[str, Any],
    evaluator: Optional[DocumentEvaluator] = None,
) -> Any:
    """
    Decrypted content evaluated as a structured document.

    NUL bytes are not rejected here; the evaluator decides what it accepts.
    """
    evaluator = evaluator or JsonDocumentEvaluator()
    artifact = _resolve(resolver, attrs, IMPORT_AGE)
    content = resolver.store.read_bytes(artifact.store_path)
    try:
        return evaluator.evaluate(artifact.store_path, content)
    except DocumentEvaluationError as e:
        e.add_trace(f"while evaluating the decrypted content from '{IMPORT_AGE}'")
        raise


def get_document_evaluator(kind: str) -> DocumentEvaluator:
    if kind == "json":
        return JsonDocumentEvaluator()
    if kind == "nix":
        return NixDocumentEvaluator()
    raise ConfigurationError(f"unknown document format '{kind}'")
