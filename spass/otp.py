"""
spass - Time-based One-Time Passwords

Secrets can carry an otpauth key URI:

    otpauth://totp/Example:alice?secret=JBSWY3DPEHPK3PXP&issuer=Example&period=30

This module parses that URI and derives the current code together with the
number of seconds it stays valid. The HMAC/TOTP algorithm itself (RFC 6238)
comes from the 'cryptography' library; we only own URI handling, the
window arithmetic and the "wait for a fresh code" policy.

Timing:
    elapsed   = now mod period
    remaining = period - elapsed

With wait=True and fewer than WAIT_THRESHOLD seconds left, the deriver
blocks for remaining + 1 seconds so the code it returns has (almost) a full
period ahead of it. The wait cannot be cancelled.
"""

import base64
import binascii
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlsplit

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.twofactor.totp import TOTP

from .errors import InvalidOTPURI

logger = logging.getLogger(__name__)


DEFAULT_PERIOD = 30
DEFAULT_DIGITS = 6
DEFAULT_ALGORITHM = "SHA1"
WAIT_THRESHOLD = 3

ALGORITHMS = {
    "SHA1": hashes.SHA1,
    "SHA256": hashes.SHA256,
    "SHA512": hashes.SHA512,
}


@dataclass(frozen=True)
class OTPKey:
    """Parameters taken from an otpauth://totp URI."""

    secret: bytes
    period: int = DEFAULT_PERIOD
    digits: int = DEFAULT_DIGITS
    algorithm: str = DEFAULT_ALGORITHM
    label: str = ""
    issuer: str = ""


def _int_param(params: Dict[str, str], name: str, default: int) -> int:
    raw = params.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise InvalidOTPURI(f"otp {name} is not a number: {raw!r}") from e
    if value <= 0:
        raise InvalidOTPURI(f"otp {name} must be positive, got {value}")
    return value


def _decode_secret(raw: str) -> bytes:
    """Decode a base32 secret; spaces, case and missing padding are tolerated."""
    cleaned = raw.replace(" ", "").upper().rstrip("=")
    cleaned += "=" * (-len(cleaned) % 8)
    try:
        return base64.b32decode(cleaned)
    except (binascii.Error, ValueError) as e:
        raise InvalidOTPURI(f"otp secret is not valid base32: {e}") from e


def parse_uri(uri: str) -> OTPKey:
    """
    Parse an otpauth://totp key URI.

    Raises:
        InvalidOTPURI: Wrong scheme/type, missing or undecodable secret,
            bad period/digits, or unsupported algorithm.
    """
    try:
        parts = urlsplit(uri.strip())
    except ValueError as e:
        raise InvalidOTPURI(f"cannot parse otp uri: {e}") from e

    if parts.scheme.lower() != "otpauth" or parts.netloc.lower() != "totp":
        raise InvalidOTPURI("not an otpauth://totp uri")

    params = {k.lower(): v[0] for k, v in parse_qs(parts.query).items()}

    secret = params.get("secret", "")
    if not secret:
        raise InvalidOTPURI("otp uri has no secret")

    algorithm = params.get("algorithm", DEFAULT_ALGORITHM).upper()
    if algorithm not in ALGORITHMS:
        raise InvalidOTPURI(f"unsupported otp algorithm: {algorithm}")

    digits = _int_param(params, "digits", DEFAULT_DIGITS)
    if not 6 <= digits <= 8:
        raise InvalidOTPURI(f"otp digits must be between 6 and 8, got {digits}")

    key_bytes = _decode_secret(secret)
    if not key_bytes:
        raise InvalidOTPURI("otp secret is empty")

    return OTPKey(
        secret=key_bytes,
        period=_int_param(params, "period", DEFAULT_PERIOD),
        digits=digits,
        algorithm=algorithm,
        label=unquote(parts.path.lstrip("/")),
        issuer=params.get("issuer", ""),
    )


def window(period: int, epoch: int) -> Tuple[int, int]:
    """Return (elapsed, remaining) seconds of the period containing `epoch`."""
    elapsed = epoch % period
    return elapsed, period - elapsed


def generate_code(key: OTPKey, epoch: float) -> str:
    """Compute the TOTP code of `key` at unix time `epoch`."""
    totp = TOTP(
        key.secret,
        key.digits,
        ALGORITHMS[key.algorithm](),
        key.period,
        enforce_key_length=False,
    )
    return totp.generate(epoch).decode("ascii")


class TOTPDeriver:
    """
    Derives current codes from otpauth URIs.

    The clock and sleep functions are injectable so tests can drive time.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.clock = clock
        self.sleep = sleep

    def current_code(
        self,
        uri: str,
        now: Optional[float] = None,
        wait: bool = False,
    ) -> Tuple[str, int]:
        """
        Current code for `uri` and the seconds it remains valid.

        Args:
            uri: otpauth://totp URI
            now: Unix time to use (default: the deriver's clock)
            wait: Block until a fresh window if fewer than
                WAIT_THRESHOLD seconds remain

        Returns:
            (code, remaining_seconds)
        """
        key = parse_uri(uri)
        explicit = now is not None
        epoch = now if explicit else self.clock()

        _, remaining = window(key.period, int(epoch))
        if wait and remaining < WAIT_THRESHOLD:
            delay = remaining + 1
            logger.info("waiting %ds for a new otp window", delay)
            self.sleep(delay)
            epoch = epoch + delay if explicit else self.clock()

        code = generate_code(key, epoch)
        _, remaining = window(key.period, int(epoch))
        return code, remaining
