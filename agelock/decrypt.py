"""
agelock Decryption

The resolver only needs one operation from the decryption tool:

    decrypt(identities, path) -> plaintext bytes

AgeDecryptor runs ``age --decrypt -i <id> ... <file>`` and returns stdout
verbatim. Any other Decryptor (e.g. a deterministic fake in tests) can be
passed to the resolver instead.
"""

import subprocess
from abc import ABC, abstractmethod
from typing import List, Sequence

DEFAULT_AGE_PATH = "age"


class DecryptionFailed(Exception):
    """The decryption tool could not be started or exited non-zero."""


class Decryptor(ABC):
    """Abstract decryption capability."""

    @abstractmethod
    def decrypt(self, identities: Sequence[str], path: str) -> bytes:
        """
        Decrypt ``path`` using every identity in ``identities``.

        Raises:
            DecryptionFailed: on spawn failure or tool error
        """
        pass


def age_command(age_path: str, identities: Sequence[str], path: str) -> List[str]:
    args = [age_path, "--decrypt"]
    for identity in identities:
        args += ["-i", identity]
    args.append(path)
    return args


class AgeDecryptor(Decryptor):
    """Decrypts with the age command line tool."""

    def __init__(self, age_path: str = DEFAULT_AGE_PATH):
        self.age_path = age_path

    def decrypt(self, identities: Sequence[str], path: str) -> bytes:
        cmd = age_command(self.age_path, identities, path)
        try:
            proc = subprocess.run(cmd, capture_output=True, stdin=subprocess.DEVNULL)
        except OSError as e:
            raise DecryptionFailed(f"could not run '{self.age_path}': {e}") from e

        if proc.returncode != 0:
            stderr = (proc.stderr or b"").decode("utf-8", errors="replace").strip()
            msg = f"program '{self.age_path}' failed with exit code {proc.returncode}"
            raise DecryptionFailed(f"{msg}: {stderr}" if stderr else msg)
        return proc.stdout
