"""
agelock Identity Discovery

Finds the private key files handed to age as -i options.

If AGE_IDENTITY_FILE is set it is the only candidate and the default paths
are never probed. Otherwise the candidates are ~/.ssh/id_ed25519 and
~/.ssh/id_rsa, in that order. A candidate is usable when it exists and is
readable. Discovery runs fresh on every resolution.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Mapping, Optional

IDENTITY_ENV_VAR = "AGE_IDENTITY_FILE"
DEFAULT_IDENTITY_FILES = (
    os.path.join(".ssh", "id_ed25519"),
    os.path.join(".ssh", "id_rsa"),
)


class Accessibility(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not found"
    NOT_READABLE = "not readable"
    INACCESSIBLE = "inaccessible"


def probe_path(path: str) -> Accessibility:
    """Classify a candidate path. OS errors while probing map to INACCESSIBLE."""
    try:
        if not os.path.exists(path):
            return Accessibility.NOT_FOUND
        if not os.access(path, os.R_OK):
            return Accessibility.NOT_READABLE
        return Accessibility.FOUND
    except (OSError, ValueError):
        return Accessibility.INACCESSIBLE


@dataclass(frozen=True)
class IdentityCandidate:
    path: str
    accessibility: Accessibility

    def usable(self) -> bool:
        return self.accessibility == Accessibility.FOUND

    def describe(self) -> str:
        return f"{self.path} ({self.accessibility.value})"


@dataclass
class IdentityDiscovery:
    """Candidates in priority order, and the usable subset."""
    candidates: List[IdentityCandidate] = field(default_factory=list)

    @property
    def usable(self) -> List[str]:
        return [c.path for c in self.candidates if c.usable()]

    def describe(self) -> str:
        if not self.candidates:
            return "no candidate paths (could not determine home directory)"
        return "checked: " + ", ".join(c.describe() for c in self.candidates)


def resolve_home(environ: Mapping[str, str]) -> Optional[str]:
    """Home directory from $HOME, else the password database."""
    home = environ.get("HOME")
    if home:
        return home
    try:
        import pwd
        return pwd.getpwuid(os.getuid()).pw_dir or None
    except (ImportError, KeyError, AttributeError):
        return None


def candidate_paths(environ: Optional[Mapping[str, str]] = None, home: Optional[str] = None) -> List[str]:
    environ = os.environ if environ is None else environ
    override = environ.get(IDENTITY_ENV_VAR)
    if override:
        return [override]
    home = home if home is not None else resolve_home(environ)
    if not home:
        return []
    return [os.path.join(home, rel) for rel in DEFAULT_IDENTITY_FILES]


def discover_identities(
    environ: Optional[Mapping[str, str]] = None,
    home: Optional[str] = None,
    probe: Optional[Callable[[str], Accessibility]] = None,
) -> IdentityDiscovery:
    """
    Discover decryption identities.

    Args:
        environ: environment to read AGE_IDENTITY_FILE / HOME from (default os.environ)
        home: explicit home directory, bypassing $HOME lookup
        probe: accessibility check, replaceable to observe filesystem access

    Returns:
        IdentityDiscovery; an empty candidate list is not an error here
    """
    probe = probe or probe_path
    return IdentityDiscovery(
        candidates=[IdentityCandidate(p, probe(p)) for p in candidate_paths(environ, home)]
    )
