"""Two-phase publish of a Markdown document to Confluence.

The document is first published with diagram placeholders, then each
diagram is rendered and uploaded as an attachment in document order, and
the resolved document is published again. A diagram that cannot be
rendered or uploaded is shown as a code block with its source instead;
only failures of the page publish itself abort the operation.
"""

import enum
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from confpub.convert import ConvertResult, DiagramBlock, MarkdownConverter
from confpub.convert.diagrams import (
    DEFAULT_DIAGRAM_LANGUAGE,
    MIME_TYPES,
    attachment_name,
    fallback_block,
    image_reference,
    resolve_placeholder,
)
from confpub.errors import ConfluenceError, ConfpubError, RenderError, ValidationError

logger = logging.getLogger(__name__)

RENDER_FAILED = 'render_failed'
UPLOAD_FAILED = 'upload_failed'


class PublishState(enum.Enum):
    """Stages of a publish operation."""

    IDLE = 'idle'
    CONVERTING = 'converting'
    INITIAL_PUBLISH = 'initial_publish'
    RESOLVING_DIAGRAMS = 'resolving_diagrams'
    FINAL_PUBLISH = 'final_publish'
    DONE = 'done'
    FAILED = 'failed'


@dataclass(frozen=True)
class StageEvent:
    """Observability record emitted at every stage transition."""

    stage: PublishState
    outcome: str
    detail: str | None = None


StageObserver = Callable[[StageEvent], None]


def log_stage_event(event: StageEvent) -> None:
    """Default observer: write the event to the module logger."""
    message = f'[{event.stage.value}] {event.outcome}'
    if event.detail:
        message = f'{message}: {event.detail}'
    if event.stage is PublishState.FAILED or event.outcome in (RENDER_FAILED, UPLOAD_FAILED):
        logger.warning(message)
    else:
        logger.info(message)


class DocumentStore(Protocol):
    """Remote document store used by the orchestrator."""

    async def get_page(
        self, page_id: str, expand: list[str] | None = None
    ) -> Mapping[str, Any]: ...

    async def update_page(
        self,
        page_id: str,
        title: str,
        body: str,
        version: int,
        version_message: str | None = None,
    ) -> Mapping[str, Any]: ...

    async def create_page(
        self,
        space_key: str,
        title: str,
        body: str,
        parent_id: str | None = None,
    ) -> Mapping[str, Any]: ...

    async def upload_attachment(
        self,
        page_id: str,
        filename: str,
        data: bytes,
        content_type: str,
        comment: str | None = None,
    ) -> str: ...

    def page_url(self, page_id: str) -> str: ...


class DiagramRenderer(Protocol):
    """Renders diagram source to image bytes, raising RenderError on failure."""

    output_format: str

    async def render(self, source: str) -> bytes: ...


@dataclass
class DiagramOutcome:
    """How one diagram was resolved."""

    ordinal: int
    attachment: str | None = None
    reason: str | None = None

    @property
    def rendered(self) -> bool:
        return self.attachment is not None


@dataclass
class PublishResult:
    """Located document reference returned after a successful publish."""

    page_id: str
    url: str
    title: str
    version: int
    diagrams: list[DiagramOutcome] = field(default_factory=list)

    @property
    def fallbacks(self) -> list[DiagramOutcome]:
        return [outcome for outcome in self.diagrams if not outcome.rendered]


class PublishOrchestrator:
    """Drive conversion, initial publish, diagram resolution and final publish.

    Every remote call is awaited in sequence. Page updates always re-read
    the current version and title first; version conflicts are reported,
    never retried.
    """

    def __init__(
        self,
        store: DocumentStore,
        converter: MarkdownConverter,
        renderer: DiagramRenderer | None = None,
        observer: StageObserver | None = None,
        image_height: int | None = 400,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Remote document store (e.g. ConfluenceClient)
            converter: Markdown converter producing placeholder-bearing markup
            renderer: Diagram renderer; without one every diagram falls back
            observer: Stage event hook (defaults to logging)
            image_height: Display height for rendered diagrams
        """
        self.store = store
        self.converter = converter
        self.renderer = renderer
        self.observer = observer or log_stage_event
        self.image_height = image_height
        self.state = PublishState.IDLE

    def _enter(self, state: PublishState, outcome: str = 'started', detail: str | None = None) -> None:
        self.state = state
        self._emit(StageEvent(state, outcome, detail))

    def _emit(self, event: StageEvent) -> None:
        try:
            self.observer(event)
        except Exception:
            logger.exception(f'Stage observer failed for {event.stage.value}')

    async def update(
        self,
        page_id: str,
        markdown_text: str,
        title: str | None = None,
        message: str | None = None,
    ) -> PublishResult:
        """Publish Markdown as a new version of an existing page.

        Args:
            page_id: Page to update
            markdown_text: Markdown source
            title: New title; defaults to the extracted title, then the current title
            message: Optional version message

        Returns:
            PublishResult for the updated page

        Raises:
            ValidationError: If page ID is missing
            ConfluenceError: If fetching or updating the page fails
        """
        if not page_id:
            raise ValidationError('Page ID is required')

        async def publish_initial(body: str, result: ConvertResult) -> tuple[str, Mapping[str, Any]]:
            page = await self._update_page(page_id, body, title or result.title, message)
            return page_id, page

        return await self._run(markdown_text, publish_initial, title, message)

    async def create(
        self,
        space_key: str,
        title: str | None,
        markdown_text: str,
        parent_id: str | None = None,
    ) -> PublishResult:
        """Publish Markdown as a new page.

        Args:
            space_key: Space to create the page in
            title: Page title; defaults to the extracted title
            markdown_text: Markdown source
            parent_id: Optional parent page ID

        Returns:
            PublishResult for the created page

        Raises:
            ValidationError: If space key or title is missing
            ConfluenceError: If creating or updating the page fails
        """
        if not space_key:
            raise ValidationError('Space key is required')

        async def publish_initial(body: str, result: ConvertResult) -> tuple[str, Mapping[str, Any]]:
            page_title = title or result.title
            if not page_title:
                raise ValidationError('Title is required')
            page = await self.store.create_page(space_key, page_title, body, parent_id)
            return str(page['id']), page

        return await self._run(markdown_text, publish_initial, title, None)

    async def _run(
        self,
        markdown_text: str,
        publish_initial: Callable[[str, ConvertResult], Awaitable[tuple[str, Mapping[str, Any]]]],
        title: str | None,
        message: str | None,
    ) -> PublishResult:
        try:
            self._enter(PublishState.CONVERTING)
            result = self.converter.convert(markdown_text)
            self._emit(
                StageEvent(PublishState.CONVERTING, 'converted', f'{len(result.diagrams)} diagrams')
            )

            self._enter(PublishState.INITIAL_PUBLISH)
            page_id, page = await publish_initial(result.html, result)
            self._emit(StageEvent(PublishState.INITIAL_PUBLISH, 'published', f'page {page_id}'))

            outcomes: list[DiagramOutcome] = []
            if result.diagrams:
                self._enter(PublishState.RESOLVING_DIAGRAMS)
                body = result.html
                for diagram in sorted(result.diagrams, key=lambda d: d.ordinal):
                    replacement, outcome = await self._resolve(page_id, diagram)
                    body = resolve_placeholder(body, diagram.ordinal, replacement)
                    outcomes.append(outcome)

                self._enter(PublishState.FINAL_PUBLISH)
                page = await self._update_page(page_id, body, title or result.title, message)
                self._emit(StageEvent(PublishState.FINAL_PUBLISH, 'published', f'page {page_id}'))
        except ConfpubError as e:
            self._enter(PublishState.FAILED, type(e).__name__, str(e))
            raise

        self._enter(PublishState.DONE, 'completed', f'page {page_id}')
        return PublishResult(
            page_id=page_id,
            url=self.store.page_url(page_id),
            title=page['title'],
            version=page['version']['number'],
            diagrams=outcomes,
        )

    async def _update_page(
        self, page_id: str, body: str, title: str | None, message: str | None
    ) -> Mapping[str, Any]:
        current = await self.store.get_page(page_id, expand=['version'])
        version = current['version']['number']
        return await self.store.update_page(
            page_id, title or current['title'], body, version, message
        )

    async def _resolve(self, page_id: str, diagram: DiagramBlock) -> tuple[str, DiagramOutcome]:
        """Render and upload one diagram, falling back to a code block."""
        language = self.converter.diagram_language or DEFAULT_DIAGRAM_LANGUAGE
        fallback = fallback_block(diagram.source_text, language)

        if self.renderer is None:
            self._diagram_failed(diagram, RENDER_FAILED, 'no renderer configured')
            return fallback, DiagramOutcome(diagram.ordinal, reason=RENDER_FAILED)

        try:
            image = await self.renderer.render(diagram.source_text)
        except RenderError as e:
            self._diagram_failed(diagram, RENDER_FAILED, str(e))
            return fallback, DiagramOutcome(diagram.ordinal, reason=RENDER_FAILED)

        extension = self.renderer.output_format
        filename = attachment_name(diagram.ordinal, extension)
        content_type = MIME_TYPES.get(extension, 'application/octet-stream')
        try:
            await self.store.upload_attachment(
                page_id, filename, image, content_type, comment=f'{language} diagram'
            )
        except (ConfluenceError, ValidationError) as e:
            self._diagram_failed(diagram, UPLOAD_FAILED, str(e))
            return fallback, DiagramOutcome(diagram.ordinal, reason=UPLOAD_FAILED)

        self._emit(StageEvent(PublishState.RESOLVING_DIAGRAMS, 'uploaded', filename))
        return (
            image_reference(filename, self.image_height),
            DiagramOutcome(diagram.ordinal, attachment=filename),
        )

    def _diagram_failed(self, diagram: DiagramBlock, reason: str, detail: str) -> None:
        self._emit(
            StageEvent(PublishState.RESOLVING_DIAGRAMS, reason, f'diagram {diagram.ordinal}: {detail}')
        )
