"""Kroki diagram rendering client.

Renders Mermaid and other diagrams to images using a Kroki service.
"""

import base64
import logging
import zlib
from types import TracebackType

import httpx

from confpub.errors import RenderError

logger = logging.getLogger(__name__)


class KrokiRenderer:
    """Render diagrams via Kroki.

    One HTTP client is shared by every render call made through the
    renderer; use it as an async context manager to release it.
    """

    def __init__(
        self,
        server_url: str = 'https://kroki.io',
        diagram_type: str = 'mermaid',
        output_format: str = 'svg',
        client: httpx.AsyncClient | None = None,
        timeout: float | None = 30.0,
    ):
        """Initialize Kroki renderer.

        Args:
            server_url: Kroki server URL
            diagram_type: Kroki endpoint (mermaid, plantuml, ...)
            output_format: Output format (svg or png)
            client: Optional HTTP client; one is created if omitted
            timeout: Request timeout in seconds
        """
        self.server_url = server_url.rstrip('/')
        self.diagram_type = diagram_type
        self.output_format = output_format
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> 'KrokiRenderer':
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _encode_diagram(self, source: str) -> str:
        """Encode diagram source for Kroki URL.

        Uses zlib compression and base64 encoding as expected by Kroki.

        Args:
            source: Diagram source code

        Returns:
            URL-safe encoded string
        """
        compressed = zlib.compress(source.encode('utf-8'), level=9)
        return base64.urlsafe_b64encode(compressed).decode('ascii')

    def diagram_url(self, source: str) -> str:
        """Build the GET URL rendering the given source."""
        encoded = self._encode_diagram(source)
        return f'{self.server_url}/{self.diagram_type}/{self.output_format}/{encoded}'

    async def render(self, source: str) -> bytes:
        """Render a diagram to image bytes.

        Args:
            source: Diagram source code

        Returns:
            Image data as bytes

        Raises:
            RenderError: If the source is invalid or the service fails
        """
        url = self.diagram_url(source)

        logger.info(f'Rendering {self.diagram_type} diagram via Kroki')
        logger.debug(f'Kroki URL: {url}')

        try:
            response = await self._client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise RenderError(f'Kroki request failed: {e}') from e

        if not response.is_success:
            logger.error(f'Kroki error: {response.text}')
            raise RenderError(
                f'Kroki returned {response.status_code}: {response.text.strip()[:200]}'
            )
        if not response.content:
            raise RenderError('Kroki returned an empty image')

        logger.info(f'Rendered diagram: {len(response.content)} bytes')
        return response.content
