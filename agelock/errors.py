"""
agelock Error Taxonomy

Every resolution attempt either produces an artifact or fails with exactly
one ErrorKind. Failures travel inside the resolver as ResolutionFailure
records and are turned into exceptions only at the boundary (unwrap,
read_age, import_age, the CLI).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class ErrorKind(str, Enum):
    """Failure kinds of a resolution attempt."""
    CONFIGURATION = "CONFIGURATION"    # unsupported field, missing field, bad hash
    PURITY = "PURITY"                  # hash omitted in pure mode
    IDENTITY = "IDENTITY"              # no usable decryption identity
    INPUT = "INPUT"                    # encrypted file absent
    TOOL = "TOOL"                      # decryption process failed
    INTEGRITY = "INTEGRITY"            # hash mismatch
    REPRESENTATION = "REPRESENTATION"  # NUL byte in string output


class AgeLockError(Exception):
    """Base class for all resolution errors."""
    kind: ErrorKind = ErrorKind.CONFIGURATION

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(AgeLockError):
    kind = ErrorKind.CONFIGURATION


class PurityError(AgeLockError):
    kind = ErrorKind.PURITY


class IdentityError(AgeLockError):
    kind = ErrorKind.IDENTITY


class InputError(AgeLockError):
    kind = ErrorKind.INPUT


class ToolError(AgeLockError):
    kind = ErrorKind.TOOL


class IntegrityError(AgeLockError):
    kind = ErrorKind.INTEGRITY


class RepresentationError(AgeLockError):
    kind = ErrorKind.REPRESENTATION


_ERROR_TYPES = {
    ErrorKind.CONFIGURATION: ConfigurationError,
    ErrorKind.PURITY: PurityError,
    ErrorKind.IDENTITY: IdentityError,
    ErrorKind.INPUT: InputError,
    ErrorKind.TOOL: ToolError,
    ErrorKind.INTEGRITY: IntegrityError,
    ErrorKind.REPRESENTATION: RepresentationError,
}


def error_type(kind: ErrorKind) -> type:
    """Return the exception class raised for a failure kind."""
    return _ERROR_TYPES[kind]


@dataclass(frozen=True)
class ResolutionFailure:
    """A terminal failure of one resolution attempt."""
    kind: ErrorKind
    message: str

    def to_exception(self) -> AgeLockError:
        return error_type(self.kind)(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}

    @classmethod
    def from_exception(cls, exc: AgeLockError) -> 'ResolutionFailure':
        return cls(kind=exc.kind, message=exc.message)
