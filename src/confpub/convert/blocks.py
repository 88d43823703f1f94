"""Block structure recognition.

Classifies source lines and provides the two block state machines:
ListBuilder keeps a stack of open lists keyed by indentation, and
TableBuilder turns a header row + separator + body rows into a table.
"""

import enum
import re
from collections.abc import Container
from dataclasses import dataclass, field

HEADING_RE = re.compile(r'^ {0,3}(#{1,6})[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$')
RULE_RE = re.compile(r'^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$')
LIST_ITEM_RE = re.compile(
    r'^(?P<indent>[ \t]*)(?:(?P<bullet>[-*+])|(?P<number>\d{1,9})[.)])[ \t]+(?P<text>.+)$'
)
TABLE_ROW_RE = re.compile(r'^[ \t]*\|.*\|[ \t]*$')
TABLE_SEPARATOR_RE = re.compile(r'^[ \t]*\|[ \t:|-]*-[ \t:|-]*\|[ \t]*$')
QUOTE_RE = re.compile(r'^ {0,3}>[ \t]?(.*)$')
CELL_SPLIT_RE = re.compile(r'(?<!\\)\|')


class ListKind(enum.Enum):
    """List flavour, valued by its storage format tag."""

    ORDERED = 'ol'
    UNORDERED = 'ul'


class LineKind(enum.Enum):
    """Classification of a single source line."""

    BLANK = 'blank'
    BLOCK = 'block'
    HEADING = 'heading'
    RULE = 'rule'
    LIST_ITEM = 'list_item'
    TABLE_ROW = 'table_row'
    QUOTE = 'quote'
    TEXT = 'text'


@dataclass
class Line:
    """A classified source line."""

    kind: LineKind
    raw: str
    text: str = ''
    level: int = 0
    indent: int = 0
    list_kind: ListKind | None = None


def classify(raw: str, block_tokens: Container[str] = ()) -> Line:
    """Classify a line of (placeholder-bearing) Markdown.

    Args:
        raw: Source line without trailing newline
        block_tokens: Placeholders that stand for whole blocks

    Returns:
        Classified Line
    """
    stripped = raw.strip()
    if not stripped:
        return Line(LineKind.BLANK, raw)
    if stripped in block_tokens:
        return Line(LineKind.BLOCK, raw, text=stripped)

    heading = HEADING_RE.match(raw)
    if heading:
        return Line(LineKind.HEADING, raw, text=heading.group(2), level=len(heading.group(1)))

    if RULE_RE.match(raw):
        return Line(LineKind.RULE, raw)

    item = LIST_ITEM_RE.match(raw)
    if item:
        kind = ListKind.UNORDERED if item.group('bullet') else ListKind.ORDERED
        indent = len(item.group('indent').expandtabs(4))
        return Line(LineKind.LIST_ITEM, raw, text=item.group('text'), indent=indent, list_kind=kind)

    if TABLE_ROW_RE.match(raw):
        return Line(LineKind.TABLE_ROW, raw, text=stripped)

    quote = QUOTE_RE.match(raw)
    if quote:
        return Line(LineKind.QUOTE, raw, text=quote.group(1))

    return Line(LineKind.TEXT, raw, text=raw.strip())


def is_table_separator(raw: str) -> bool:
    """Check whether a line is a table header separator (dashes, colons, pipes)."""
    return bool(TABLE_SEPARATOR_RE.match(raw))


def split_cells(row: str) -> list[str]:
    """Split a table row into trimmed cell texts.

    The empty segments produced by the boundary pipes are discarded and
    escaped pipes (``\\|``) are kept as literal pipes inside a cell.
    """
    segments = CELL_SPLIT_RE.split(row.strip())
    if segments and not segments[0].strip():
        segments = segments[1:]
    if segments and not segments[-1].strip():
        segments = segments[:-1]
    return [segment.strip().replace('\\|', '|') for segment in segments]


@dataclass
class ListFrame:
    """An open list on the nesting stack."""

    kind: ListKind
    indent: int
    item_open: bool = False


@dataclass
class ListBuilder:
    """List nesting state machine.

    Indentation values on the stack are strictly increasing from bottom to
    top. A nested list is opened inside the parent's still-open item.
    """

    stack: list[ListFrame] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return bool(self.stack)

    def _pop(self) -> list[str]:
        frame = self.stack.pop()
        closing = ['</li>'] if frame.item_open else []
        closing.append(f'</{frame.kind.value}>')
        return closing

    def add_item(self, kind: ListKind, indent: int, content: str) -> list[str]:
        """Feed one list item line.

        Args:
            kind: Ordered or unordered
            indent: Leading whitespace width
            content: Already formatted item content

        Returns:
            Markup fragments to emit, in order
        """
        out: list[str] = []
        while self.stack and self.stack[-1].indent > indent:
            out.extend(self._pop())

        if not self.stack or self.stack[-1].indent < indent:
            self.stack.append(ListFrame(kind, indent))
            out.append(f'<{kind.value}>')
        elif self.stack[-1].kind != kind:
            out.extend(self._pop())
            self.stack.append(ListFrame(kind, indent))
            out.append(f'<{kind.value}>')
        elif self.stack[-1].item_open:
            out.append('</li>')

        out.append(f'<li>{content}')
        self.stack[-1].item_open = True
        return out

    def close_all(self) -> list[str]:
        """Close every open list, innermost first."""
        out: list[str] = []
        while self.stack:
            out.extend(self._pop())
        return out


@dataclass
class TableBuilder:
    """Table state machine: header section followed by body rows."""

    active: bool = False

    def open(self, header_cells: list[str]) -> list[str]:
        """Start a table with its header row."""
        self.active = True
        cells = ''.join(f'<th>{cell}</th>' for cell in header_cells)
        return ['<table><thead>', f'<tr>{cells}</tr>', '</thead><tbody>']

    def add_row(self, cells: list[str]) -> list[str]:
        """Emit a body row."""
        return ['<tr>' + ''.join(f'<td>{cell}</td>' for cell in cells) + '</tr>']

    def close(self) -> list[str]:
        """Close the table if one is open."""
        if not self.active:
            return []
        self.active = False
        return ['</tbody></table>']
