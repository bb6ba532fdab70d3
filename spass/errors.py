"""
spass - Error Types

Every failure in the core is raised as a subclass of SpassError so callers
can catch the whole family at once. Nothing here is retried: an error aborts
the current operation and goes straight back to the caller.
"""

from typing import Optional


class SpassError(Exception):
    """Base class for all spass errors."""


# =============================================================================
# Store
# =============================================================================

class NotFound(SpassError):
    """
    No secret with that name could be opened.

    Missing files, unreadable files and directories all end up here; the
    store does not tell them apart.
    """

    def __init__(self, name: str):
        super().__init__(f"no secret found named '{name}'")
        self.name = name


class MissingKeyID(SpassError):
    """No .gpg-id file was found between the secret and the store root."""

    def __init__(self, name: str):
        super().__init__(f"cannot read .gpg-id file for secret '{name}'")
        self.name = name


class WipeIncomplete(SpassError):
    """The overwrite before delete did not cover the whole file."""

    def __init__(self, name: str, written: int, size: int):
        super().__init__(
            f"could not fully wipe secret '{name}' ({written} of {size} bytes written)"
        )
        self.name = name
        self.written = written
        self.size = size


class SecretExists(SpassError):
    """A secret with that name already exists and overwrite was not requested."""

    def __init__(self, name: str):
        super().__init__(
            f"a secret named '{name}' already exists, pass overwrite=True to replace its password"
        )
        self.name = name


class EncryptionError(SpassError):
    """The external encryption tool failed (non-zero exit or could not run)."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


# =============================================================================
# Secret body
# =============================================================================

class EmptyPassword(SpassError):
    """The password line of the secret is empty."""


class PasswordIsOTP(SpassError):
    """The password line holds an otpauth URI instead of a password."""


class KeyNotFound(SpassError):
    """No pair in the secret carries the requested key."""

    def __init__(self, key: str, name: str):
        super().__init__(f"key '{key}' not found in secret '{name}'")
        self.key = key
        self.name = name


# =============================================================================
# Generator / OTP / Breach corpus
# =============================================================================

class RandomSourceError(SpassError):
    """The operating system's secure random source could not supply entropy."""


class InvalidOTPURI(SpassError):
    """The otpauth URI cannot be parsed or has no usable secret."""


class OTPNotConfigured(SpassError):
    """The secret has no otpauth://totp line."""

    def __init__(self, name: str):
        super().__init__(f"no otp set up in secret '{name}'")
        self.name = name


class CorpusUnavailable(SpassError):
    """The breach corpus could not be queried (transport error or non-200)."""


class CorpusResponseMalformed(SpassError):
    """A line of the breach corpus response is not SUFFIX:COUNT."""


# =============================================================================
# Collaborators
# =============================================================================

class EditorError(SpassError):
    """The editor could not be run or exited with an error."""


# =============================================================================
# Search
# =============================================================================

class InvalidQuery(SpassError):
    """A search query is not of the form key:value."""

    def __init__(self, query: str):
        super().__init__(f"invalid query '{query}', expected key:value")
        self.query = query


class NoMatch(SpassError):
    """No secret holds a pair matching the search query."""

    def __init__(self, query: str):
        super().__init__(f"no match found for '{query}'")
        self.query = query
