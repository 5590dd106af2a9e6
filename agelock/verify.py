"""
agelock Plaintext Verification

Compares the SHA-256 of decrypted content with the declared hash. The
outcome decides whether the content may be written to the store:

    MATCH     declared hash equals the actual digest; write
    UNPINNED  no hash declared (impure mode only); write, then print the hash
    MISMATCH  declared hash differs; never write
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .hashing import Digest, sha256_digest


class IntegrityOutcome(str, Enum):
    MATCH = "MATCH"
    UNPINNED = "UNPINNED"
    MISMATCH = "MISMATCH"


@dataclass(frozen=True)
class IntegrityCheck:
    """Result of checking plaintext against an expected digest."""
    outcome: IntegrityOutcome
    actual: Digest
    expected: Optional[Digest] = None

    def may_store(self) -> bool:
        return self.outcome != IntegrityOutcome.MISMATCH

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "actual": self.actual.to_sri(),
            "expected": self.expected.to_sri() if self.expected else None,
        }


def verify_plaintext(plaintext: bytes, expected: Optional[Digest]) -> IntegrityCheck:
    actual = sha256_digest(plaintext)
    if expected is None:
        return IntegrityCheck(IntegrityOutcome.UNPINNED, actual)
    if actual == expected:
        return IntegrityCheck(IntegrityOutcome.MATCH, actual, expected)
    return IntegrityCheck(IntegrityOutcome.MISMATCH, actual, expected)


def mismatch_message(who: str, file: str, check: IntegrityCheck) -> str:
    return (
        f"{who}: hash mismatch for '{file}'.\n"
        f"  specified: {check.expected.to_sri()}\n"
        f"  got:       {check.actual.to_sri()}\n"
        "(did you update the encrypted file without updating the hash?)"
    )


def pin_message(who: str, file: str, digest: Digest) -> str:
    return f"{who}: hash for '{file}' is:\n  hash = \"{digest.to_sri()}\";"
