"""Per-conversion state shared by every conversion stage."""

import re
from dataclasses import dataclass, field

# Control characters never survive into storage format (invalid in XML 1.0),
# so tokens delimited by them cannot collide with document content.
TOKEN_START = '\x02'
TOKEN_END = '\x03'

PLACEHOLDER_RE = re.compile(f'{TOKEN_START}([a-z]+)_(\\d+){TOKEN_END}')

DIAGRAM_PLACEHOLDER_PREFIX = '<!--confpub:'


@dataclass
class CodeFragment:
    """Code content removed from the document before formatting."""

    language: str
    raw_text: str
    block: bool = True


@dataclass
class DiagramBlock:
    """Diagram source extracted from a fenced block."""

    ordinal: int
    source_text: str

    @property
    def placeholder(self) -> str:
        return diagram_placeholder(self.ordinal)


def diagram_placeholder(ordinal: int) -> str:
    """Return the comment placeholder for a diagram ordinal.

    HTML comments pass through the inline and block passes untouched.
    """
    return f'{DIAGRAM_PLACEHOLDER_PREFIX}diagram_{ordinal}-->'


@dataclass
class ConversionContext:
    """Placeholder counters and registries for one conversion run."""

    fragments: dict[str, CodeFragment] = field(default_factory=dict)
    diagrams: list[DiagramBlock] = field(default_factory=list)
    _counters: dict[str, int] = field(default_factory=dict)

    def mint(self, kind: str) -> str:
        """Create a fresh placeholder token for the given kind.

        Args:
            kind: Placeholder kind (e.g. "code", "diagram")

        Returns:
            Opaque token, unique within this context
        """
        ordinal = self._counters.get(kind, 0)
        self._counters[kind] = ordinal + 1
        return f'{TOKEN_START}{kind}_{ordinal}{TOKEN_END}'

    def next_ordinal(self, kind: str) -> int:
        """Reserve the next ordinal for a kind without building a token."""
        ordinal = self._counters.get(kind, 0)
        self._counters[kind] = ordinal + 1
        return ordinal


def strip_token_delimiters(text: str) -> str:
    """Remove placeholder delimiter characters from untrusted input."""
    return text.replace(TOKEN_START, '').replace(TOKEN_END, '')


def neutralize_diagram_placeholders(text: str) -> str:
    """Break up literal diagram placeholder comments in untrusted input."""
    return text.replace(DIAGRAM_PLACEHOLDER_PREFIX, '<!-- confpub:')
