"""
Request schema for agelock.

A request is ``{file: path (required), hash: optional string}``; any other
field is rejected. parse_request maps pydantic validation errors onto
ConfigurationError with the calling operation's name in the message.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ConfigurationError
from .hashing import Digest, parse_hash


class AgeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    file: Path
    hash: Optional[str] = None

    @field_validator("hash")
    @classmethod
    def _empty_hash_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v == "":
            return None
        return v


@dataclass(frozen=True)
class EncryptedReference:
    """An encrypted source file plus the digest its plaintext must have."""
    file: Path
    expected_hash: Optional[Digest] = None

    @classmethod
    def of(cls, file: Union[str, os.PathLike], hash: Optional[str] = None) -> 'EncryptedReference':
        return cls(file=Path(file), expected_hash=parse_hash(hash))


def parse_request(attrs: Mapping[str, Any], who: str) -> EncryptedReference:
    """
    Validate a request mapping and build an EncryptedReference.

    Raises:
        ConfigurationError: unknown field, missing 'file', wrong field type,
            or a malformed hash string
    """
    try:
        req = AgeRequest.model_validate(dict(attrs))
    except ValidationError as e:
        raise ConfigurationError(_describe(e, who)) from None
    return EncryptedReference(file=req.file, expected_hash=parse_hash(req.hash))


def _describe(error: ValidationError, who: str) -> str:
    for err in error.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or "?"
        if err["type"] == "extra_forbidden":
            return f"unsupported attribute '{field}' in '{who}'"
        if err["type"] == "missing":
            return f"'{field}' attribute is required in '{who}'"
    err = error.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ())) or "?"
    return f"invalid '{field}' attribute passed to '{who}': {err.get('msg', 'invalid value')}"
