"""Single-shot HTTP access to the target application's description endpoint."""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from specgen.core.exceptions import FetchError
from specgen.services import converter

logger = structlog.get_logger(__name__)

DEFAULT_REQUEST_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class DescriptionDocument:
    """A retrieved description: the parsed tree plus the body it came from."""

    content: Any
    raw_text: str
    url: str


class HttpProbe:
    """
    Issues one bounded GET per call.

    No retries happen here and no connection is kept between calls: each
    request opens its own client and closes it before returning.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the probe.

        Args:
            timeout: Per-request timeout in seconds
            transport: Optional transport override (e.g. httpx.MockTransport in tests)
        """
        self.timeout = timeout
        self.transport = transport

    def _client(self, timeout: float | None = None) -> httpx.Client:
        if timeout is None or timeout > self.timeout:
            timeout = self.timeout
        return httpx.Client(timeout=timeout, transport=self.transport)

    def probe(self, url: str, timeout: float | None = None) -> bool:
        """
        Check whether the endpoint currently answers with HTTP 200.

        Any transport error or non-200 status counts as "not ready".

        Args:
            url: Endpoint to check
            timeout: Upper bound for this request; the configured timeout applies if it is shorter
        """
        try:
            with self._client(timeout) as client:
                response = client.get(url)
        except httpx.HTTPError as e:
            logger.debug("probe_failed", url=url, error=str(e))
            return False

        if response.status_code != httpx.codes.OK:
            logger.debug("probe_not_ready", url=url, status_code=response.status_code)
            return False
        return True

    def fetch(self, url: str) -> DescriptionDocument:
        """
        Retrieve and parse the description document.

        Args:
            url: Full description endpoint URL

        Returns:
            The parsed description

        Raises:
            FetchError: On a non-200 response, a transport failure or an undecodable body
            MalformedInputError: If the body is not valid JSON
        """
        logger.info("fetching_description", url=url)
        try:
            with self._client() as client:
                response = client.get(url)
                if response.status_code != httpx.codes.OK:
                    raise FetchError(status_code=response.status_code)
                raw_text = response.text
        except httpx.HTTPError as e:
            # Includes httpx.DecodingError for bodies that fail content decoding
            raise FetchError(cause=e) from e

        return DescriptionDocument(content=converter.parse(raw_text), raw_text=raw_text, url=url)
