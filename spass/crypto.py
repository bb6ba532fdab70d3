"""
spass - Cryptography Module

spass never encrypts anything itself. Secret files are OpenPGP messages and
all encryption/decryption is handed to the gpg binary, exactly like pass
does it. That keeps existing password stores (and gpg-agent, smartcards,
pinentry) working unchanged.

The store only needs two operations, so any object with these methods can
stand in for gpg (tests use a reversible fake):

    decrypt(path) -> bytes
    encrypt(recipient, plaintext) -> bytes

This file also has the hashing helpers used by the breach check.
"""

import hashlib
import hmac
import logging
import subprocess
from typing import List, Optional, Tuple

from .errors import EncryptionError

logger = logging.getLogger(__name__)


# =============================================================================
# gpg subprocess
# =============================================================================

class GPG:
    """
    Thin wrapper around the gpg command line.

    Both calls block until gpg exits. `timeout` is None by default, so a
    hung gpg (e.g. waiting on pinentry) hangs the caller too.
    """

    def __init__(self, binary: str = "gpg", timeout: Optional[float] = None):
        self.binary = binary
        self.timeout = timeout

    def decrypt(self, path: str) -> bytes:
        """Decrypt the file at `path` and return the plaintext bytes."""
        return self._run([self.binary, "--quiet", "--decrypt", str(path)])

    def encrypt(self, recipient: str, plaintext: bytes) -> bytes:
        """Encrypt `plaintext` for `recipient` (a key id, fingerprint or email)."""
        return self._run(
            [self.binary, "--quiet", "--recipient", recipient, "--encrypt"],
            stdin=plaintext,
        )

    def _run(self, args: List[str], stdin: Optional[bytes] = None) -> bytes:
        try:
            proc = subprocess.run(
                args,
                input=stdin,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise EncryptionError(f"could not run {self.binary}: {e}") from e

        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            logger.debug("%s exited with %d", self.binary, proc.returncode)
            raise EncryptionError(
                f"{self.binary} failed with exit code {proc.returncode}",
                returncode=proc.returncode,
                stderr=stderr,
            )

        return proc.stdout


# =============================================================================
# Hashing
# =============================================================================

PREFIX_LENGTH = 5


def sha1_hex(password: str) -> str:
    """Uppercase hex SHA-1 of the UTF-8 password (40 characters)."""
    return hashlib.sha1(password.encode("utf-8")).hexdigest().upper()


def split_hash(digest: str, prefix_length: int = PREFIX_LENGTH) -> Tuple[str, str]:
    """Split a hex digest into (prefix, suffix), both uppercased."""
    digest = digest.upper()
    return digest[:prefix_length], digest[prefix_length:]


def constant_compare(a: bytes, b: bytes) -> bool:
    """
    Compare two byte strings in constant time.

    Uses built-in hmac.compare_digest (constant-time).
    """
    return hmac.compare_digest(a, b)
