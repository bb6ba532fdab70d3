"""
spass - Secret Stores

This file handles:
- Mapping secret names to files (<root>/<namespace>/<name>.gpg)
- Reading/writing encrypted secret files through the gpg collaborator
- Finding the recipient key (.gpg-id) for a secret
- Listing secrets
- Wiping and deleting secrets

On-disk layout (same as pass):

    ~/.password-store/
        .gpg-id                 <- recipient for everything below
        email.gpg
        work/
            .gpg-id             <- optional, overrides for work/
            vpn.gpg

Lifecycle of one secret: Absent -> write -> Present -> write -> Present
-> remove -> Absent (wiped). There is no locking: two processes writing the
same secret at the same time can lose an update.
"""

import logging
import os
import stat
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

from .errors import EncryptionError, MissingKeyID, NotFound, WipeIncomplete
from .secret import SUFFIX, SecretName

logger = logging.getLogger(__name__)


KEY_ID_FILE = ".gpg-id"
FILL_BYTE = b"\x00"

NameLike = Union[str, SecretName]


class SecretStore(ABC):
    """
    What the rest of spass needs from a place that keeps secrets.

    Bodies go in and come out as plaintext strings; how (and whether) they
    are encrypted at rest is up to the implementation.
    """

    @abstractmethod
    def read(self, name: NameLike) -> str:
        """Plaintext body of `name`. Raises NotFound."""

    @abstractmethod
    def write(self, name: NameLike, plaintext: str) -> None:
        """Create or replace `name` with `plaintext`."""

    @abstractmethod
    def exists(self, name: NameLike) -> bool:
        """True if a secret called `name` is present."""

    @abstractmethod
    def list(self, namespace: str = "") -> List[SecretName]:
        """All secret names, optionally limited to a namespace, sorted."""

    @abstractmethod
    def remove(self, name: NameLike) -> None:
        """Delete `name`. Raises NotFound."""


# =============================================================================
# FILE STORE
# =============================================================================

class FileStore(SecretStore):
    """
    pass-compatible store: one encrypted file per secret.

    Usage:
        store = FileStore("~/.password-store", GPG())
        store.write("work/vpn", "hunter2\\nusername: alice")
        body = store.read("work/vpn")
        store.remove("work/vpn")

    `cipher` is anything with decrypt(path) -> bytes and
    encrypt(recipient, plaintext) -> bytes (see crypto.GPG).
    """

    def __init__(self, root: Union[str, Path], cipher, suffix: str = SUFFIX):
        self.root = Path(root).expanduser()
        self.cipher = cipher
        self.suffix = suffix

    def resolve(self, name: NameLike) -> Path:
        """Path of the file backing `name`. No I/O."""
        full = SecretName(str(name)).full.strip("/")
        return self.root / (full + self.suffix)

    def exists(self, name: NameLike) -> bool:
        return self.resolve(name).is_file()

    def read(self, name: NameLike) -> str:
        """
        Decrypt and return the body of `name`.

        Any failure to open the file (missing, unreadable, a directory)
        is reported as NotFound. gpg failures, and plaintext that is not
        UTF-8, raise EncryptionError.
        """
        path = self.resolve(name)
        try:
            with open(path, "rb") as f:
                if not stat.S_ISREG(os.fstat(f.fileno()).st_mode):
                    raise NotFound(str(name))
        except OSError:
            raise NotFound(str(name))

        plaintext = self.cipher.decrypt(str(path))
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncryptionError(f"decrypted secret '{name}' is not valid UTF-8") from e

    def key_id(self, name: NameLike) -> str:
        """
        Recipient for `name`: the nearest .gpg-id at or above its directory.

        Read fresh on every call. Raises MissingKeyID.
        """
        directory = self.resolve(name).parent
        while True:
            candidate = directory / KEY_ID_FILE
            try:
                keyid = candidate.read_text(encoding="utf-8").strip()
            except OSError:
                keyid = ""
            if keyid:
                return keyid
            if directory == self.root or directory == directory.parent:
                break
            directory = directory.parent

        raise MissingKeyID(str(name))

    def write(self, name: NameLike, plaintext: str) -> None:
        """
        Encrypt `plaintext` for the secret's recipient and write it out.

        Nothing touches the disk until encryption has succeeded, so a
        failure leaves any previous version in place.
        """
        path = self.resolve(name)
        keyid = self.key_id(name)
        ciphertext = self.cipher.encrypt(keyid, plaintext.encode("utf-8"))

        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(ciphertext)

        logger.info("wrote secret '%s' (%d bytes)", name, len(ciphertext))

    def list(self, namespace: str = "") -> List[SecretName]:
        """
        Every file under the root except .gpg-id files, as secret names.

        Args:
            namespace: If set, keep only secrets in that namespace or below.
        """
        names = []
        for dirpath, _, filenames in os.walk(self.root):
            for filename in filenames:
                if filename == KEY_ID_FILE:
                    continue
                path = os.path.join(dirpath, filename)
                if not os.path.isfile(path):
                    continue
                try:
                    secret = SecretName.from_path(str(self.root), path, self.suffix)
                except ValueError:
                    logger.warning("skipping unnamed file %s", path)
                    continue
                if secret.in_namespace(namespace):
                    names.append(secret)

        return sorted(names)

    def remove(self, name: NameLike) -> None:
        """
        Overwrite the secret's file with filler bytes, then unlink it.

        If fewer bytes than the file size were written the file is left in
        place and WipeIncomplete is raised.

        Note: this is a best-effort overwrite. Journaling filesystems and
        SSDs may keep the old blocks around.
        """
        path = self.resolve(name)
        try:
            fd = os.open(path, os.O_RDWR)
        except OSError:
            raise NotFound(str(name))

        try:
            size = os.fstat(fd).st_size
            written = self._overwrite(fd, FILL_BYTE * size)
            if written != size:
                raise WipeIncomplete(str(name), written, size)
            os.fsync(fd)
        finally:
            os.close(fd)

        self._unlink(path)
        logger.info("removed secret '%s' (%d bytes wiped)", name, size)

    def _overwrite(self, fd: int, data: bytes) -> int:
        """Single write of `data` at the start of the file; returns bytes written."""
        return os.write(fd, data)

    def _unlink(self, path: Path) -> None:
        os.remove(path)


# =============================================================================
# MEMORY STORE
# =============================================================================

class MemoryStore(SecretStore):
    """Plaintext dict-backed store, for tests and dry runs."""

    def __init__(self, secrets: Optional[Dict[str, str]] = None):
        self.secrets: Dict[str, str] = dict(secrets or {})

    def _key(self, name: NameLike) -> str:
        return SecretName(str(name)).full.strip("/")

    def read(self, name: NameLike) -> str:
        try:
            return self.secrets[self._key(name)]
        except KeyError:
            raise NotFound(str(name))

    def write(self, name: NameLike, plaintext: str) -> None:
        self.secrets[self._key(name)] = plaintext

    def exists(self, name: NameLike) -> bool:
        return self._key(name) in self.secrets

    def list(self, namespace: str = "") -> List[SecretName]:
        names = [SecretName(key) for key in self.secrets]
        return sorted(n for n in names if n.in_namespace(namespace))

    def remove(self, name: NameLike) -> None:
        try:
            del self.secrets[self._key(name)]
        except KeyError:
            raise NotFound(str(name))
