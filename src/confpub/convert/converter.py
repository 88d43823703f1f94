"""Markdown to Confluence storage format converter.

This module assembles the conversion stages into a single pass:
code protection, diagram extraction, block structure and inline
formatting, code restoration, and final XHTML normalization.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from confpub.convert.blocks import (
    Line,
    LineKind,
    ListBuilder,
    TableBuilder,
    classify,
    is_table_separator,
    split_cells,
)
from confpub.convert.codespans import protect, restore
from confpub.convert.context import (
    PLACEHOLDER_RE,
    CodeFragment,
    ConversionContext,
    DiagramBlock,
    strip_token_delimiters,
)
from confpub.convert.diagrams import DEFAULT_DIAGRAM_LANGUAGE, extract_diagrams
from confpub.convert.inline import format_inline

logger = logging.getLogger(__name__)

TOC_MACRO = '<ac:structured-macro ac:name="toc" />'

CDATA_SPLIT_RE = re.compile(r'(<!\[CDATA\[.*?\]\]>)', re.DOTALL)
VOID_TAG_RE = re.compile(
    r'<\s*(hr|br|img)\b((?:"[^"]*"|\'[^\']*\'|[^\'"<>/])*?)\s*/?\s*>', re.IGNORECASE
)
VOID_CLOSING_RE = re.compile(r'<\s*/\s*(?:hr|br|img)\s*>', re.IGNORECASE)
EMPTY_PARAGRAPH_RE = re.compile(r'<p>\s*</p>')


@dataclass
class ConvertResult:
    """Result of converting a Markdown document."""

    html: str
    diagrams: list[DiagramBlock] = field(default_factory=list)
    title: str | None = None


def normalize_void_elements(markup: str) -> str:
    """Force the self-closing form for hr, br and img.

    Any spelling of these tags collapses to ``<hr />``, ``<br />`` or
    ``<img ... />``, and closing tags for them are removed. CDATA
    sections are left untouched.
    """
    parts = CDATA_SPLIT_RE.split(markup)
    for index in range(0, len(parts), 2):
        part = VOID_CLOSING_RE.sub('', parts[index])
        parts[index] = VOID_TAG_RE.sub(
            lambda m: f'<{m.group(1).lower()}{m.group(2).rstrip()} />', part
        )
    return ''.join(parts)


def finalize(markup: str) -> str:
    """Wrap bare text in a paragraph and drop empty paragraphs."""
    markup = markup.strip()
    if markup and not markup.startswith('<'):
        markup = f'<p>{markup}</p>'
    return EMPTY_PARAGRAPH_RE.sub('', markup)


class _Assembler:
    """Drives the block state machines over the protected text."""

    def __init__(self, context: ConversionContext, extract_title: bool) -> None:
        self.context = context
        self.extract_title = extract_title
        self.title: str | None = None
        self.parts: list[str] = []
        self.paragraph: list[str] = []
        self.quote: list[str] = []
        self.lists = ListBuilder()
        self.table = TableBuilder()

    def _flush_paragraph(self) -> None:
        if self.paragraph:
            body = format_inline('\n'.join(self.paragraph))
            self.parts.append(f'<p>{body}</p>')
            self.paragraph = []

    def _flush_quote(self) -> None:
        if self.quote:
            body = format_inline('\n'.join(self.quote).strip('\n'))
            self.parts.append(f'<blockquote><p>{body}</p></blockquote>')
            self.quote = []

    def _close_blocks(self, keep_quote: bool = False) -> None:
        self._flush_paragraph()
        if not keep_quote:
            self._flush_quote()
        self.parts.extend(self.lists.close_all())
        self.parts.extend(self.table.close())

    def _heading(self, line: Line) -> None:
        level = line.level
        if self.extract_title:
            if self.title is None and level == 1:
                self.title = self._plain_text(line.text)
                return
            if self.title is not None:
                level = max(1, level - 1)
        self.parts.append(f'<h{level}>{format_inline(line.text)}</h{level}>')

    def _plain_text(self, text: str) -> str:
        def replace(match: re.Match[str]) -> str:
            fragment: CodeFragment | None = self.context.fragments.get(match.group(0))
            return fragment.raw_text if fragment else ''

        return PLACEHOLDER_RE.sub(replace, text).strip()

    def assemble(self, text: str) -> str:
        block_tokens = {p for p, f in self.context.fragments.items() if f.block}
        block_tokens.update(d.placeholder for d in self.context.diagrams)

        lines = text.split('\n')
        index = 0
        while index < len(lines):
            line = classify(lines[index], block_tokens)
            index += 1

            if self.table.active:
                if line.kind is LineKind.TABLE_ROW:
                    cells = [format_inline(cell) for cell in split_cells(line.text)]
                    self.parts.extend(self.table.add_row(cells))
                    continue
                self.parts.extend(self.table.close())

            if line.kind is LineKind.LIST_ITEM:
                self._flush_paragraph()
                self._flush_quote()
                assert line.list_kind is not None
                self.parts.extend(
                    self.lists.add_item(line.list_kind, line.indent, format_inline(line.text))
                )
                continue

            if line.kind is LineKind.QUOTE:
                self._close_blocks(keep_quote=True)
                self.quote.append(line.text)
                continue

            if (
                line.kind is LineKind.TABLE_ROW
                and index < len(lines)
                and is_table_separator(lines[index])
            ):
                self._close_blocks()
                header = [format_inline(cell) for cell in split_cells(line.text)]
                self.parts.extend(self.table.open(header))
                index += 1
                continue

            if line.kind in (LineKind.TEXT, LineKind.TABLE_ROW):
                self._flush_quote()
                self.parts.extend(self.lists.close_all())
                self.paragraph.append(line.text)
                continue

            self._close_blocks()
            if line.kind is LineKind.HEADING:
                self._heading(line)
            elif line.kind is LineKind.RULE:
                self.parts.append('<hr />')
            elif line.kind is LineKind.BLOCK:
                self.parts.append(line.text)

        self._close_blocks()
        return ''.join(self.parts)


class MarkdownConverter:
    """Convert Markdown to Confluence storage format."""

    def __init__(
        self,
        diagram_language: str | None = DEFAULT_DIAGRAM_LANGUAGE,
        prepend_toc: bool = False,
        extract_title: bool = False,
    ) -> None:
        """Initialize the converter.

        Args:
            diagram_language: Fence label extracted as diagrams; None keeps
                diagram fences as ordinary code blocks
            prepend_toc: Whether to prepend a table of contents macro
            extract_title: Whether to extract title from first H1 and level up headers
        """
        self.diagram_language = diagram_language
        self.prepend_toc = prepend_toc
        self.extract_title = extract_title

    def convert(self, markdown_text: str) -> ConvertResult:
        """Convert Markdown text to Confluence storage format.

        Args:
            markdown_text: Markdown source text

        Returns:
            ConvertResult with placeholder-bearing XHTML, diagrams and optional title
        """
        logger.debug(f'Converting {len(markdown_text)} characters of markdown')
        text = strip_token_delimiters(markdown_text.replace('\r\n', '\n').replace('\r', '\n'))

        context = ConversionContext()
        passthrough = (self.diagram_language,) if self.diagram_language else ()
        text, fragments = protect(text, context, passthrough)

        diagrams: list[DiagramBlock] = []
        if self.diagram_language:
            text, diagrams = extract_diagrams(text, context, self.diagram_language)

        assembler = _Assembler(context, self.extract_title)
        body = assembler.assemble(text)
        body = restore(body, fragments)
        body = finalize(normalize_void_elements(body))

        if self.prepend_toc:
            body = TOC_MACRO + body

        logger.debug(
            f'Converted to {len(body)} characters of XHTML with {len(diagrams)} diagrams'
        )
        return ConvertResult(html=body, diagrams=list(diagrams), title=assembler.title)

    def convert_file(self, file_path: str | Path) -> ConvertResult:
        """Convert a Markdown file to Confluence storage format.

        Args:
            file_path: Path to Markdown file

        Returns:
            ConvertResult with XHTML, diagrams and optional title

        Raises:
            FileNotFoundError: If file doesn't exist
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f'Markdown file not found: {file_path}')

        logger.info(f'Converting file: {file_path}')
        markdown_text = path.read_text(encoding='utf-8')
        return self.convert(markdown_text)
