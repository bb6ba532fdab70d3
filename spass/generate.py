"""
spass - Password Generation

Character sets (disjoint, no character appears in two classes):
- Lowercase: a-z (26, always included)
- Uppercase: A-Z (26)
- Digits: 0-9 (10)
- Symbols: ~!@#$%^&*()_+`-={}|[]\\:"<>?,./ (30)

Every position is drawn independently and uniformly over the exact
alphabet size with secrets.randbelow(), which uses os.urandom() and
rejection sampling (no modulo bias).
"""

import logging
import secrets
import string
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import RandomSourceError

logger = logging.getLogger(__name__)


LOWER = string.ascii_lowercase
UPPER = string.ascii_uppercase
DIGITS = string.digits
SYMBOLS = "~!@#$%^&*()_+`-={}|[]\\:\"<>?,./"

DEFAULT_LENGTH = 18


@dataclass(frozen=True)
class GenerationPolicy:
    """
    Which character classes go into a generated password.

    Lowercase is always in; the other three can be switched off.
    """

    uppercase: bool = True
    digits: bool = True
    symbols: bool = True

    def alphabet(self) -> str:
        chars = LOWER
        if self.uppercase:
            chars += UPPER
        if self.digits:
            chars += DIGITS
        if self.symbols:
            chars += SYMBOLS
        return chars


def generate_password(
    length: int = DEFAULT_LENGTH,
    policy: Optional[GenerationPolicy] = None,
    randbelow: Callable[[int], int] = secrets.randbelow,
) -> str:
    """
    Generate a random password.

    Args:
        length: Password length (must be > 0)
        policy: Character classes to use (default: all four)
        randbelow: Secure source returning a uniform int in [0, n)

    Returns:
        Random password string

    Raises:
        ValueError: If length is not positive
        RandomSourceError: If the random source fails. There is no
            fallback to a non-cryptographic generator and no retry.
    """
    if length <= 0:
        raise ValueError(f"password length must be positive, got {length}")

    alphabet = (policy or GenerationPolicy()).alphabet()
    size = len(alphabet)

    chars = []
    for _ in range(length):
        try:
            index = randbelow(size)
        except (OSError, NotImplementedError) as e:
            raise RandomSourceError(f"secure random source failed: {e}") from e
        chars.append(alphabet[index])

    logger.debug("generated password of length %d over %d characters", length, size)
    return "".join(chars)
