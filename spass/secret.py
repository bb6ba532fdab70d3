"""
spass - Secret Format

A secret is one encrypted text blob. Once decrypted, its body follows the
usual pass layout:

    hunter2                                  <- line 0: the password
    username: alice                          <- key: value pairs
    url: https://example.com
    otpauth://totp/Example:alice?secret=...  <- optional one-time password URI
    some free-form note                      <- keyless pair

This module turns that text into a SecretRecord and back, and holds the
SecretName type used to address secrets in a store.

Parsing rules:
- Line 0 is the password slot. It is never parsed as a pair, even when it
  looks like one (or like an otpauth URI).
- Every other non-empty line is split on the first ": " into key and value.
  Lines without ": " become keyless pairs.
- If the value after the split starts with "//", the split is thrown away
  and the whole line becomes a keyless pair. This keeps URLs intact.
- The first line after line 0 that starts with "otpauth://totp" is also
  remembered as the record's OTP URI.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import EmptyPassword, PasswordIsOTP


SEPARATOR = ": "
KEYLESS_PREFIX = "//"
OTP_PREFIX = "otpauth://totp"
# The password guard is stricter than OTP detection: it needs the path slash.
OTP_PASSWORD_PREFIX = "otpauth://totp/"

SUFFIX = ".gpg"


# =============================================================================
# Names
# =============================================================================

@dataclass(frozen=True, order=True)
class SecretName:
    """
    Slash-delimited name of a secret, e.g. "work/email/alice".

    The name never carries the ".gpg" file suffix.
    """

    full: str

    def __post_init__(self):
        if not self.full or not self.full.strip("/"):
            raise ValueError("secret name cannot be empty")
        if self.full.endswith(SUFFIX):
            raise ValueError(f"secret name cannot end with '{SUFFIX}': {self.full}")

    @property
    def namespace(self) -> str:
        """Everything but the last segment ("" for top-level secrets)."""
        head, _, _ = self.full.rpartition("/")
        return head

    @property
    def name(self) -> str:
        """The last segment."""
        return self.full.rpartition("/")[2]

    def in_namespace(self, namespace: str) -> bool:
        """True if this secret lives in `namespace` or somewhere below it."""
        namespace = namespace.strip("/")
        if not namespace:
            return True
        ns = self.namespace
        return ns == namespace or ns.startswith(namespace + "/")

    @classmethod
    def from_path(cls, root: str, path: str, suffix: str = SUFFIX) -> "SecretName":
        """Derive the name of the secret stored at `path` under `root`."""
        rel = os.path.relpath(path, root).replace(os.sep, "/")
        if rel.endswith(suffix):
            rel = rel[: -len(suffix)]
        return cls(rel)

    def __str__(self) -> str:
        return self.full


# =============================================================================
# Records
# =============================================================================

@dataclass
class Pair:
    """One body line. `key` is None for keyless lines."""

    value: str
    key: Optional[str] = None

    def line(self) -> str:
        if self.key is None:
            return self.value
        return self.key + SEPARATOR + self.value


@dataclass
class SecretRecord:
    """
    Decoded form of one secret's plaintext.

    Built fresh from the plaintext on every read and thrown away after use;
    the only persistent form is the encrypted file.
    """

    password: str = ""
    pairs: List[Pair] = field(default_factory=list)
    otp_uri: Optional[str] = None


def parse_line(line: str) -> Pair:
    """Parse a single (non-password) body line into a Pair."""
    key, sep, value = line.partition(SEPARATOR)
    if not sep:
        return Pair(value=line)

    if value.startswith(KEYLESS_PREFIX):
        return Pair(value=line)

    return Pair(value=value, key=key)


def decode(plaintext: str) -> SecretRecord:
    """
    Decode a secret body into a SecretRecord.

    Pure function of the input: no time, randomness or I/O involved.
    """
    lines = plaintext.split("\n")
    record = SecretRecord(password=lines[0])

    for line in lines[1:]:
        if line == "":
            continue
        record.pairs.append(parse_line(line))
        if record.otp_uri is None and line.startswith(OTP_PREFIX):
            record.otp_uri = line

    return record


def encode(record: SecretRecord) -> str:
    """Serialize a record: password line, then every pair in order."""
    lines = [record.password]
    lines.extend(pair.line() for pair in record.pairs)
    return "\n".join(lines)


def password_of(record: SecretRecord) -> str:
    """
    Return the password of a record.

    Raises:
        EmptyPassword: line 0 is empty
        PasswordIsOTP: line 0 is an otpauth://totp/ URI
    """
    password = record.password
    if password == "":
        raise EmptyPassword("no password set for secret")
    if password.startswith(OTP_PASSWORD_PREFIX):
        raise PasswordIsOTP("password line holds an otpauth URI")
    return password


def set_password(old_plaintext: Optional[str], new_password: str) -> str:
    """
    Replace the password line of a body, keeping everything after it.

    `old_plaintext` is None (or "") for a secret that does not exist yet.
    Only the text before the first newline changes; the rest of the body,
    blank lines included, is carried over byte for byte.
    """
    if "\n" in new_password:
        raise ValueError("password cannot contain a newline")

    _, sep, rest = (old_plaintext or "").partition("\n")
    return new_password + sep + rest


def get(record: SecretRecord, key: str, case_insensitive: bool = False) -> List[str]:
    """
    Values of all pairs whose key matches `key`, in body order.

    Case-insensitive matching lowercases both sides.
    """
    if case_insensitive:
        wanted = key.lower()
        return [p.value for p in record.pairs if p.key is not None and p.key.lower() == wanted]
    return [p.value for p in record.pairs if p.key == key]
