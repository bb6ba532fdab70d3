"""
spass - Vault (user-facing operations)

The Vault ties the pieces together. Every call follows the same path:

    name -> store.read() (gpg decrypt) -> secret.decode() -> record
         -> password / pairs / otp / breach check

and for changes:

    generator / editor -> new body -> store.write() (gpg encrypt)

Nothing is cached: each call decrypts the secret again and the decoded
record is dropped when the call returns.
"""

import logging
from typing import Callable, List, Optional, Tuple

from . import clipboard
from . import editor as editor_mod
from . import secret
from .config import Settings
from .crypto import GPG
from .errors import InvalidQuery, KeyNotFound, NoMatch, OTPNotConfigured, SecretExists
from .generate import DEFAULT_LENGTH, GenerationPolicy, generate_password
from .logger import setup_logging
from .otp import TOTPDeriver
from .pwnd import BreachChecker
from .secret import Pair, SecretName, SecretRecord
from .store import FileStore, NameLike, SecretStore

logger = logging.getLogger(__name__)


class Vault:
    """
    Main entry point for working with a password store.

    Usage:
        vault = Vault.from_settings(Settings())

        vault.generate("web/github")              # new random password
        vault.password("web/github")              # -> "x7#..."
        vault.get("web/github", "username")       # -> ["alice"]
        code, left = vault.otp("web/github", wait=True)
        vault.pwnd("web/github")                  # -> False
        vault.search("username:ali")              # -> [(SecretName, Pair)]
        vault.remove("web/github")
    """

    def __init__(
        self,
        store: SecretStore,
        totp: Optional[TOTPDeriver] = None,
        breach: Optional[BreachChecker] = None,
        editor: Optional[Callable[[str], str]] = None,
        copy: Callable[[str], bool] = clipboard.copy,
    ):
        self.store = store
        self.totp = totp or TOTPDeriver()
        self.breach = breach
        self.editor = editor
        self.copy = copy

    @classmethod
    def from_settings(cls, settings: Settings) -> "Vault":
        """Build a file-backed vault from settings."""
        setup_logging(settings.log_level)
        cipher = GPG(settings.gpg_binary, timeout=settings.gpg_timeout)
        breach = BreachChecker(
            api_key=settings.hibp_api_key,
            url=settings.hibp_url,
            timeout=settings.hibp_timeout,
        )
        return cls(
            FileStore(settings.store_dir, cipher),
            breach=breach,
            editor=lambda text: editor_mod.edit(settings.editor, text),
        )

    # =========================================================================
    # READING
    # =========================================================================

    def list(self, namespace: str = "") -> List[SecretName]:
        return self.store.list(namespace)

    def exists(self, name: NameLike) -> bool:
        return self.store.exists(name)

    def body(self, name: NameLike) -> str:
        """Full decrypted body of the secret."""
        return self.store.read(name)

    def record(self, name: NameLike) -> SecretRecord:
        return secret.decode(self.store.read(name))

    def password(self, name: NameLike) -> str:
        """Password line of the secret (EmptyPassword / PasswordIsOTP if unusable)."""
        return secret.password_of(self.record(name))

    def pairs(self, name: NameLike) -> List[Pair]:
        return self.record(name).pairs

    def get(self, name: NameLike, key: str, case_insensitive: bool = False) -> List[str]:
        """
        Values stored under `key` in the secret.

        Raises:
            KeyNotFound: No pair has that key
        """
        values = secret.get(self.record(name), key, case_insensitive)
        if not values:
            raise KeyNotFound(key, str(name))
        return values

    def otp(self, name: NameLike, wait: bool = False) -> Tuple[str, int]:
        """
        Current one-time code of the secret and seconds left.

        Raises:
            OTPNotConfigured: The secret has no otpauth://totp line
            InvalidOTPURI: The line is there but unusable
        """
        uri = self.record(name).otp_uri
        if uri is None:
            raise OTPNotConfigured(str(name))
        return self.totp.current_code(uri, wait=wait)

    def pwnd(self, name: NameLike) -> bool:
        """True if the secret's password shows up in the breach corpus."""
        if self.breach is None:
            raise RuntimeError("no breach checker configured")
        return self.breach.check(self.password(name))

    def search(self, query: str) -> List[Tuple[SecretName, Pair]]:
        """
        Find pairs across the whole store by key and value.

        Args:
            query: "key:value". The key must match exactly, ignoring case
                (an empty key matches keyless pairs); the value matches as a
                case-insensitive substring.

        Returns:
            (secret name, pair) for every matching pair, in listing order

        Raises:
            InvalidQuery: No ":" in the query
            NoMatch: Nothing in the store matched
        """
        key, sep, value = query.partition(":")
        if not sep:
            raise InvalidQuery(query)
        key, value = key.lower(), value.lower()

        matches = []
        for name in self.store.list(""):
            for pair in self.record(name).pairs:
                if (pair.key or "").lower() == key and value in pair.value.lower():
                    matches.append((name, pair))

        if not matches:
            raise NoMatch(query)
        logger.info("search matched %d pair(s)", len(matches))
        return matches

    # =========================================================================
    # WRITING
    # =========================================================================

    def write(self, name: NameLike, body: str) -> None:
        self.store.write(name, body)

    def set_password(self, name: NameLike, password: str) -> None:
        """Replace the password line, keeping the rest of the body."""
        old = self.store.read(name) if self.store.exists(name) else ""
        self.store.write(name, secret.set_password(old, password))

    def generate(
        self,
        name: NameLike,
        length: int = DEFAULT_LENGTH,
        policy: Optional[GenerationPolicy] = None,
        overwrite: bool = False,
    ) -> str:
        """
        Generate a password and store it as the secret's password line.

        Raises:
            SecretExists: `name` exists and overwrite is False
        """
        if self.store.exists(name) and not overwrite:
            raise SecretExists(str(name))

        password = generate_password(length, policy)
        self.set_password(name, password)
        logger.info("generated new password for '%s'", name)
        return password

    def edit(self, name: NameLike) -> str:
        """Open the secret's body in the editor and save the result."""
        if self.editor is None:
            raise RuntimeError("no editor configured")
        body = self.store.read(name)
        edited = self.editor(body)
        self.store.write(name, edited)
        logger.info("secret '%s' saved", name)
        return edited

    def remove(self, name: NameLike) -> None:
        """Wipe and delete the secret."""
        self.store.remove(name)

    # =========================================================================
    # CLIPBOARD
    # =========================================================================

    def copy_password(self, name: NameLike) -> bool:
        return self.copy(self.password(name))

    def copy_otp(self, name: NameLike, wait: bool = False) -> Tuple[str, int]:
        code, remaining = self.otp(name, wait=wait)
        self.copy(code)
        return code, remaining
