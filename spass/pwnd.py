"""
spass - Breach Check (k-anonymity range query)

Checks whether a password shows up in the Have I Been Pwned password corpus
without revealing it:

    1. hash = uppercase hex SHA-1 of the password (40 chars)
    2. send only hash[:5] to GET {url}/range/{prefix}
    3. the corpus answers with every known "SUFFIX:COUNT" under that prefix
    4. compare prefix + SUFFIX against our hash locally

The request asks for padding (Add-Padding: true), so the response also holds
fake entries with COUNT 0. Those are skipped.

There is no retry: a failed query is raised to the caller as-is.
"""

import logging
from typing import Optional

import requests

from . import __version__
from .crypto import constant_compare, sha1_hex, split_hash
from .errors import CorpusResponseMalformed, CorpusUnavailable

logger = logging.getLogger(__name__)


DEFAULT_URL = "https://api.pwnedpasswords.com"
USER_AGENT = f"spass/{__version__}"


class BreachChecker:
    """
    Client for the pwned-passwords range API.

    Usage:
        checker = BreachChecker(api_key="...")
        if checker.check("hunter2"):
            print("password was pwnd!")
    """

    def __init__(
        self,
        api_key: str = "",
        url: str = DEFAULT_URL,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def range_url(self, prefix: str) -> str:
        return f"{self.url}/range/{prefix}"

    def fetch_range(self, prefix: str) -> str:
        """
        Fetch the raw "SUFFIX:COUNT" list for a 5-character hash prefix.

        Raises:
            CorpusUnavailable: Transport error or non-200 response
        """
        headers = {
            "hibp-api-key": self.api_key,
            "User-Agent": USER_AGENT,
            "Add-Padding": "true",
        }
        try:
            response = self.session.get(
                self.range_url(prefix), headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise CorpusUnavailable(f"failed to fetch range from {self.url}: {e}") from e

        if response.status_code != 200:
            raise CorpusUnavailable(
                f"response {response.status_code} from {self.url}"
            )

        return response.text

    def check(self, password: str) -> bool:
        """
        Return True if the password appears in the breach corpus.

        Raises:
            CorpusUnavailable: The corpus could not be queried
            CorpusResponseMalformed: A response line is not SUFFIX:COUNT
        """
        digest = sha1_hex(password)
        prefix, _ = split_hash(digest)
        logger.debug("querying breach corpus for prefix %s", prefix)

        body = self.fetch_range(prefix)

        for line in body.splitlines():
            line = line.strip()
            if not line:
                continue

            parts = line.split(":")
            if len(parts) != 2:
                raise CorpusResponseMalformed(f"malformed range line: {line!r}")

            suffix, count = parts
            if count == "0":
                continue

            candidate = (prefix + suffix).upper()
            if constant_compare(candidate.encode("ascii", "replace"), digest.encode("ascii")):
                logger.info("password found in breach corpus (prefix %s)", prefix)
                return True

        return False
