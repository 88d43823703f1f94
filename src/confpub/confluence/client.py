"""Confluence REST API client used as the remote document store.

Pages are fetched, created, updated and searched through the v1 content
API; attachments are replaced by name. Every non-2xx answer is raised as a
RemoteRejectError subclass and network failures as TransportError.
"""

import json
import logging
from typing import Any, NotRequired, TypedDict

import httpx

from confpub.errors import RemoteRejectError, TransportError, ValidationError, remote_reject

logger = logging.getLogger(__name__)

CONNECTION_HINTS = {
    401: 'Authentication failed, check the credentials',
    403: 'Access forbidden, the REST API may be disabled for this account',
    404: 'API endpoint not found, check base_url',
}


class PageVersionDict(TypedDict):
    """Version block of a content response."""

    number: int
    message: NotRequired[str]


class PageDict(TypedDict):
    """Content response for a page."""

    id: str
    type: str
    title: str
    version: PageVersionDict
    body: NotRequired[dict[str, Any]]
    _links: NotRequired[dict[str, Any]]


class AttachmentDict(TypedDict):
    """Attachment entry of a child listing."""

    id: str
    title: str
    _links: NotRequired[dict[str, Any]]


def error_message(response: httpx.Response, action: str) -> str:
    """Build a readable message from an error response.

    Uses the JSON ``message`` and first ``data.errors`` entry when the body is
    structured, otherwise the raw body text.

    Args:
        response: Failed HTTP response
        action: Description of the attempted operation

    Returns:
        Error message
    """
    message = f'Failed to {action}: {response.status_code}'
    try:
        parsed = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        parsed = None

    if isinstance(parsed, dict):
        if parsed.get('message'):
            message = f'{message}: {parsed["message"]}'
        errors = (parsed.get('data') or {}).get('errors')
        if isinstance(errors, list) and errors:
            first = errors[0]
            detail = first.get('message') if isinstance(first, dict) else None
            if isinstance(detail, dict):
                detail = detail.get('translation') or detail.get('key')
            if detail:
                message = f'{message}: {detail}'
    elif response.text.strip():
        message = f'{message} - {response.text.strip()}'
    return message


def _page_payload(title: str, body: str) -> dict[str, Any]:
    return {
        'type': 'page',
        'title': title,
        'body': {'storage': {'value': body, 'representation': 'storage'}},
    }


class ConfluenceClient:
    """Document store backed by the Confluence REST API."""

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        """Wrap an authenticated HTTP client.

        Args:
            client: Authenticated httpx AsyncClient
            base_url: Confluence base URL (e.g., https://confluence.example.com)
        """
        self.client = client
        self.base_url = base_url.rstrip('/')
        self.api_url = f'{self.base_url}/rest/api'

    async def _request(self, method: str, url: str, action: str, **kwargs: Any) -> httpx.Response:
        """Send a request and translate failures.

        Raises:
            TransportError: On network failure
            RemoteRejectError: On a non-2xx response
        """
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise TransportError(f'Network error while trying to {action}: {e}') from e

        if not response.is_success:
            logger.error(f'Error response ({response.status_code}): {response.text}')
            raise remote_reject(response.status_code, error_message(response, action))
        return response

    @staticmethod
    def _json(response: httpx.Response, action: str) -> Any:
        """Decode a JSON body, rejecting anything else (e.g. an SSO login page)."""
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            content_type = response.headers.get('content-type', 'unknown')
            raise RemoteRejectError(
                response.status_code,
                f'Failed to {action}: expected JSON, got {content_type}',
            ) from e

    async def test_connection(self) -> None:
        """Check that the base URL and credentials are usable.

        Raises:
            ConfluenceError: With a hint matching the failure
        """
        url = f'{self.api_url}/content'
        try:
            await self._request('GET', url, 'connect to Confluence', params={'limit': 1})
        except RemoteRejectError as e:
            hint = CONNECTION_HINTS.get(e.status_code)
            if hint is None:
                raise
            raise type(e)(e.status_code, f'{hint} ({e.status_code}). Tried: {url}') from e
        logger.info(f'Connected to {self.base_url}')

    async def create_page(
        self,
        space_key: str,
        title: str,
        body: str,
        parent_id: str | None = None,
    ) -> PageDict:
        """Create a page in a space.

        Args:
            space_key: Target space
            title: Title of the new page
            body: Storage format markup
            parent_id: Page to nest the new page under

        Returns:
            The created page, including its ID and first version

        Raises:
            ValidationError: If space key or title is missing
            ConfluenceError: If request fails
        """
        if not space_key or not title:
            raise ValidationError('Space key and title are required')

        payload = _page_payload(title, body)
        payload['space'] = {'key': space_key}

        if parent_id:
            payload['ancestors'] = [{'id': parent_id}]

        logger.info(f'Creating page "{title}" in space {space_key}')
        logger.debug(f'Payload size: {len(body)} characters')
        response = await self._request(
            'POST', f'{self.api_url}/content', 'create page', json=payload
        )

        data: PageDict = self._json(response, 'create page')
        logger.info(f'Created page with ID: {data["id"]}')
        return data

    async def get_page(
        self, page_id: str, expand: list[str] | None = None
    ) -> PageDict:
        """Fetch a page.

        Args:
            page_id: Page ID
            expand: Extra fields to include, e.g. ["body.storage", "version"]

        Returns:
            The page with its title, version and any expanded fields

        Raises:
            ValidationError: If page ID is missing
            ConfluenceError: If request fails
        """
        if not page_id:
            raise ValidationError('Page ID is required')

        params = {}
        if expand:
            params['expand'] = ','.join(expand)

        logger.info(f'Getting page {page_id}')
        response = await self._request(
            'GET', f'{self.api_url}/content/{page_id}', 'fetch page', params=params
        )

        data: PageDict = self._json(response, 'fetch page')
        return data

    async def update_page(
        self,
        page_id: str,
        title: str,
        body: str,
        version: int,
        version_message: str | None = None,
    ) -> PageDict:
        """Replace the title and body of a page as a new version.

        Args:
            page_id: Page ID
            title: Title to store
            body: Storage format markup
            version: Version the caller last read; the page moves to version + 1
            version_message: Comment recorded on the new version

        Returns:
            The page at its new version

        Raises:
            ValidationError: If page ID is missing
            ConfluenceError: If request fails (VersionConflictError on 409)
        """
        if not page_id:
            raise ValidationError('Page ID is required')

        payload = _page_payload(title, body)
        payload['version'] = {'number': version + 1}

        if version_message:
            payload['version']['message'] = version_message

        logger.info(f'Updating page {page_id} from version {version} to {version + 1}')
        logger.debug(f'Update payload size: {len(body)} characters')
        response = await self._request(
            'PUT', f'{self.api_url}/content/{page_id}', 'update page', json=payload
        )

        data: PageDict = self._json(response, 'update page')
        logger.info(f'Updated page {page_id} to version {data["version"]["number"]}')
        return data

    async def search_pages(
        self, query: str, space_key: str | None = None, limit: int = 10
    ) -> list[PageDict]:
        """Search pages by title.

        Args:
            query: Title fragment
            space_key: Optional space restriction
            limit: Maximum number of results

        Returns:
            Matching pages
        """
        escaped = query.replace('\\', '\\\\').replace('"', '\\"')
        cql = f'title ~ "{escaped}"'
        if space_key:
            cql = f'space = {space_key} AND {cql}'

        logger.info(f'Searching pages: {cql}')
        response = await self._request(
            'GET',
            f'{self.api_url}/content/search',
            'search pages',
            params={'cql': cql, 'limit': limit},
        )
        results: list[PageDict] = self._json(response, 'search pages').get('results', [])
        return results

    def page_url(self, page_id: str) -> str:
        """Build the web URL for a page without a request."""
        return f'{self.base_url}/pages/viewpage.action?pageId={page_id}'

    async def get_page_url(self, page_id: str) -> str:
        """Resolve the browser URL of a page.

        Uses the page's own web UI link when the server reports one.

        Args:
            page_id: Page ID

        Returns:
            Absolute page URL

        Raises:
            ConfluenceError: If request fails
        """
        page = await self.get_page(page_id)
        webui = page.get('_links', {}).get('webui')
        if webui:
            return f'{self.base_url}{webui}'
        return self.page_url(page_id)

    async def upload_attachment(
        self,
        page_id: str,
        filename: str,
        data: bytes,
        content_type: str,
        comment: str | None = None,
    ) -> str:
        """Upload an attachment, replacing any attachment with the same name.

        An existing attachment of the same filename is deleted first, so
        repeated uploads of one name leave exactly one attachment.

        Args:
            page_id: Page owning the attachment
            filename: Attachment name
            data: Attachment content
            content_type: MIME type sent with the upload
            comment: Comment stored with the attachment

        Returns:
            The attachment filename

        Raises:
            ValidationError: If page ID, filename or data is missing
            ConfluenceError: If request fails (ForbiddenError on 403)
        """
        if not page_id or not filename or not data:
            raise ValidationError('Page ID, file name, and content are required')

        existing = await self._find_attachment_by_name(page_id, filename)
        if existing:
            logger.info(f"Deleting existing attachment '{filename}' (id={existing['id']})")
            await self.delete_content(existing['id'])

        files = {'file': (filename, data, content_type)}
        form_data = {'comment': comment} if comment else None

        logger.info(f"Uploading attachment '{filename}' to page {page_id}")
        response = await self._request(
            'POST',
            f'{self.api_url}/content/{page_id}/child/attachment',
            f'upload attachment {filename}',
            files=files,
            data=form_data,
            headers={'X-Atlassian-Token': 'nocheck'},
        )

        if not self._json(response, f'upload attachment {filename}').get('results'):
            raise remote_reject(response.status_code, f'No attachment created for {filename}')
        logger.info(f'Uploaded attachment {filename} ({len(data)} bytes)')
        return filename

    async def delete_content(self, content_id: str) -> None:
        """Delete a content item (page or attachment).

        Args:
            content_id: Content ID
        """
        await self._request(
            'DELETE',
            f'{self.api_url}/content/{content_id}',
            f'delete content {content_id}',
            headers={'X-Atlassian-Token': 'nocheck'},
        )

    async def _find_attachment_by_name(
        self, page_id: str, filename: str
    ) -> AttachmentDict | None:
        """Return the attachment named filename, or None."""
        attachments = await self.get_attachments(page_id, filename)
        return next((a for a in attachments if a.get('title') == filename), None)

    async def get_attachments(
        self, page_id: str, filename: str | None = None
    ) -> list[AttachmentDict]:
        """Get attachments on a page.

        Args:
            page_id: Page ID
            filename: Optional filename filter

        Returns:
            List of attachments

        Raises:
            ConfluenceError: If request fails
        """
        params = {'filename': filename} if filename else {}
        logger.info(f'Getting attachments for page {page_id}')
        response = await self._request(
            'GET',
            f'{self.api_url}/content/{page_id}/child/attachment',
            'list attachments',
            params=params,
        )
        data = self._json(response, 'list attachments')
        results: list[AttachmentDict] = data.get('results', [])
        return results
