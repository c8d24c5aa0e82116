"""HTTPS transport for the Boundary meters API."""

import logging
import ssl

import httpx

from boundary_meter.meters.exceptions import TransportFailure, UnsupportedOperation
from boundary_meter.meters.requests import redact_headers
from boundary_meter.telemetry import get_tracer, record_status, request_span

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "DELETE"})
BODY_METHODS = frozenset({"POST", "PUT"})


class MeterTransport:
    """Sends authenticated requests and classifies the responses.

    Server certificates are always verified against the configured CA
    bundle. Any 2xx status is a success; everything else raises
    ``TransportFailure``.
    """

    def __init__(
        self,
        ca_file: str,
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            ca_file: Path to the CA bundle used for TLS verification.
            timeout: Request timeout in seconds.
            http_client: Optional HTTP client for testing.
        """
        self._ca_file = ca_file
        self._timeout = timeout
        self._client = http_client

    def _get_client(self) -> httpx.Client:
        """Get or create the HTTP client.

        Raises:
            TransportFailure: If the CA bundle cannot be loaded.
        """
        if self._client is None:
            try:
                context = ssl.create_default_context(cafile=self._ca_file)
            except (OSError, ssl.SSLError) as e:
                raise TransportFailure(
                    f"Could not load CA bundle {self._ca_file}: {e}"
                ) from e
            self._client = httpx.Client(verify=context, timeout=self._timeout)
        return self._client

    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: str | None = None,
    ) -> httpx.Response:
        """Send a request to the API.

        Args:
            method: GET, POST, PUT or DELETE.
            url: Absolute URL.
            headers: Request headers.
            body: Request body, sent for POST and PUT only.

        Returns:
            The 2xx response.

        Raises:
            UnsupportedOperation: If the method is not supported. Nothing is sent.
            TransportFailure: On network/TLS errors or a non-2xx status.
        """
        verb = method.upper()
        if verb not in SUPPORTED_METHODS:
            logger.error("Unsupported http method %s for %s", method, url)
            raise UnsupportedOperation(f"Unsupported http method: {method}")

        content = body if verb in BODY_METHODS else None

        logger.debug("Url: %s", url)
        logger.debug("Headers: %s", redact_headers(headers))
        logger.debug("Request Body: %s", content)

        with request_span(tracer, verb, url) as span:
            try:
                response = self._get_client().request(
                    verb, url, headers=headers, content=content
                )
            except httpx.HTTPError as e:
                logger.error("Request failed for %s to %s: %s", verb, url, e)
                raise TransportFailure(f"{verb} to {url} failed: {e}") from e

            record_status(span, response.status_code)

        logger.debug("Response Body: %s", response.text)
        logger.debug("Status: %d", response.status_code)

        if not response.is_success:
            logger.error("Got a %d for %s to %s", response.status_code, verb, url)
            raise TransportFailure(
                f"Got a {response.status_code} for {verb} to {url}",
                status_code=response.status_code,
            )

        return response

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "MeterTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
