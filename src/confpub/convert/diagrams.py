"""Diagram extraction and diagram markup.

Diagram fences are replaced by comment placeholders during conversion.
After rendering, each placeholder becomes either an attachment image
reference or a fallback code block carrying the diagram source.
"""

import html
import re

from confpub.convert.codespans import FENCE_RE, code_macro
from confpub.convert.context import (
    ConversionContext,
    DiagramBlock,
    diagram_placeholder,
    neutralize_diagram_placeholders,
)

DEFAULT_DIAGRAM_LANGUAGE = 'mermaid'

FALLBACK_TITLE = 'Mermaid Diagram'

MIME_TYPES: dict[str, str] = {
    'svg': 'image/svg+xml',
    'png': 'image/png',
}

BLANK_EDGE_RE = re.compile(r'^(?:[ \t]*\n)+|(?:\n[ \t]*)+$')


def extract_diagrams(
    text: str,
    context: ConversionContext,
    language: str = DEFAULT_DIAGRAM_LANGUAGE,
) -> tuple[str, list[DiagramBlock]]:
    """Replace diagram fences with ordinal placeholders.

    Placeholder-shaped comments already present outside diagram fences are
    neutralized so only extracted diagrams can be resolved later.

    Args:
        text: Markdown text (code spans already protected)
        context: Conversion context collecting the diagrams
        language: Fence label identifying diagrams (case-sensitive)

    Returns:
        Tuple of (text with placeholders, diagrams in document order)
    """
    parts: list[str] = []
    position = 0
    for match in FENCE_RE.finditer(text):
        parts.append(neutralize_diagram_placeholders(text[position:match.start()]))
        position = match.end()
        if match.group('lang') != language:
            parts.append(match.group(0))
            continue
        ordinal = context.next_ordinal('diagram')
        source = BLANK_EDGE_RE.sub('', match.group('body'))
        context.diagrams.append(DiagramBlock(ordinal=ordinal, source_text=source))
        parts.append(match.group('indent') + diagram_placeholder(ordinal))
    parts.append(neutralize_diagram_placeholders(text[position:]))
    return ''.join(parts), context.diagrams


def attachment_name(ordinal: int, extension: str) -> str:
    """Return the attachment filename for a diagram ordinal."""
    return f'diagram-{ordinal}.{extension}'


def image_reference(filename: str, height: int | None = 400) -> str:
    """Render an image macro pointing at a page attachment.

    Args:
        filename: Attachment filename
        height: Display height in pixels

    Returns:
        Storage format markup
    """
    height_attr = f' ac:height="{height}"' if height else ''
    return (
        f'<ac:image{height_attr}>'
        f'<ri:attachment ri:filename="{html.escape(filename)}" />'
        f'</ac:image>'
    )


def fallback_block(source: str, language: str = DEFAULT_DIAGRAM_LANGUAGE) -> str:
    """Render diagram source as a labeled code block."""
    return code_macro(language, source, title=FALLBACK_TITLE)


def resolve_placeholder(markup: str, ordinal: int, replacement: str) -> str:
    """Substitute one diagram placeholder.

    Args:
        markup: Storage format markup containing placeholders
        ordinal: Diagram ordinal
        replacement: Markup to insert

    Returns:
        Updated markup
    """
    return markup.replace(diagram_placeholder(ordinal), replacement)
