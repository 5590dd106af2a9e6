"""
Configuration module for agelock.

Centralizes environment variable handling. Settings are snapshotted once
into a ResolverSettings value that is passed to the resolver explicitly;
nothing reads the environment in the middle of a resolution except
identity discovery, which is recomputed per call.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional

from .decrypt import DEFAULT_AGE_PATH
from .errors import ConfigurationError
from .store import ContentStore, StoreError, get_store

# ============================================================
# Environment Variables
# ============================================================

AGE_PATH_ENV = "AGE_PATH"
MODE_ENV = "AGELOCK_MODE"
REPAIR_ENV = "AGELOCK_REPAIR"
STORE_ENV = "AGELOCK_STORE"
STORE_DIR_ENV = "AGELOCK_STORE_DIR"
SUBSTITUTERS_ENV = "AGELOCK_SUBSTITUTERS"
LOG_LEVEL_ENV = "AGELOCK_LOG_LEVEL"
LOG_JSON_ENV = "AGELOCK_LOG_JSON"

DEFAULT_LOCAL_STORE_DIR = os.path.join("~", ".cache", "agelock", "store")

TRUTHY = ("1", "true", "yes", "on")


class EvaluationMode(str, Enum):
    """PURE forbids uncontrolled side effects: a hash must be declared."""
    PURE = "pure"
    IMPURE = "impure"

    @classmethod
    def parse(cls, value: str) -> 'EvaluationMode':
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"invalid evaluation mode '{value}' (expected 'pure' or 'impure')"
            ) from None


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in TRUTHY


@dataclass(frozen=True)
class ResolverSettings:
    """Explicit resolver configuration."""
    mode: EvaluationMode = EvaluationMode.IMPURE
    repair: bool = False
    age_path: str = DEFAULT_AGE_PATH
    store_type: str = "local"
    store_dir: Optional[str] = None
    substituters: List[str] = field(default_factory=list)

    @property
    def pure(self) -> bool:
        return self.mode == EvaluationMode.PURE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ResolverSettings':
        environ = os.environ if environ is None else environ
        store_type = environ.get(STORE_ENV, "local").strip() or "local"
        store_dir = environ.get(STORE_DIR_ENV) or None
        subs = [s for s in environ.get(SUBSTITUTERS_ENV, "").split(os.pathsep) if s]
        return cls(
            mode=EvaluationMode.parse(environ.get(MODE_ENV, EvaluationMode.IMPURE.value)),
            repair=_flag(environ.get(REPAIR_ENV)),
            age_path=environ.get(AGE_PATH_ENV) or DEFAULT_AGE_PATH,
            store_type=store_type,
            store_dir=store_dir,
            substituters=subs,
        )

    def build_store(self) -> ContentStore:
        store_dir = self.store_dir
        if store_dir is None and self.store_type == "local":
            store_dir = os.path.expanduser(DEFAULT_LOCAL_STORE_DIR)
        try:
            return get_store(self.store_type, store_dir, self.substituters)
        except StoreError as e:
            raise ConfigurationError(str(e)) from e


# ============================================================
# Logging
# ============================================================

def log_level(environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    return (environ.get(LOG_LEVEL_ENV) or "WARNING").upper()


def log_json(environ: Optional[Mapping[str, str]] = None) -> bool:
    environ = os.environ if environ is None else environ
    return _flag(environ.get(LOG_JSON_ENV))
