"""Inline formatting.

A single-pass tokenizer rewrites emphasis, links, images, and line breaks
into storage format. Every construct is matched once, left to right; the
alternatives of INLINE_RE are ordered so that at any position the longest
marker wins (``***`` before ``**`` before ``*``). Placeholders, comments
and entities are emitted unchanged. Inline HTML is kept only for known
inline elements whose tags balance within the fragment; every other
``&``, ``<`` and ``>`` is escaped so the result is well-formed XML.
"""

import html
import re

from confpub.convert.context import TOKEN_END, TOKEN_START

HR_RE = re.compile(r'^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$')

INLINE_RE = re.compile(
    r'(?P<comment><!--[\s\S]*?-->)'
    rf'|(?P<placeholder>{TOKEN_START}[a-z]+_\d+{TOKEN_END})'
    r'|(?P<escape>\\[\\`*_{}\[\]()#+\-.!~|<>])'
    r'|(?P<image>!\[(?P<image_alt>[^\]]*)\]\((?P<image_url>[^)\s]+)(?:\s+"(?P<image_title>[^"]*)")?\))'
    r'|(?P<link>\[(?P<link_text>[^\]]+)\]\((?P<link_url>[^)\s]+)(?:\s+"(?P<link_title>[^"]*)")?\))'
    r'|(?P<autolink><(?P<autolink_url>(?:https?|mailto|ftp):[^<>\s]+)>)'
    r'|\*\*\*(?P<strong_em_a>\S(?:.*?\S)?)\*\*\*'
    r'|(?<!\w)___(?P<strong_em_b>\S(?:.*?\S)?)___(?!\w)'
    r'|\*\*(?P<strong_a>\S(?:.*?\S)?)\*\*'
    r'|(?<!\w)__(?P<strong_b>\S(?:.*?\S)?)__(?!\w)'
    r'|\*(?P<em_a>[^*\s](?:.*?[^*\s])?)\*'
    r'|(?<!\w)_(?P<em_b>[^_\s](?:.*?[^_\s])?)_(?!\w)'
    r'|~~(?P<del>\S(?:.*?\S)?)~~'
    r'|(?P<tag></?[A-Za-z][\w:-]*(?:\s+[\w:-]+\s*=\s*(?:"[^"<]*"|\'[^\'<]*\'))*\s*/?>)'
    r'|(?P<entity>&(?:#\d+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);)'
    r'|(?P<paragraph>\n{2,})'
    r'|(?P<newline>[ \t]*\n)'
    r'|(?P<special>[&<>])'
)

INLINE_ELEMENTS = frozenset({
    'a', 'abbr', 'b', 'br', 'cite', 'code', 'del', 'dfn', 'em', 'i',
    'img', 'ins', 'kbd', 'mark', 'q', 's', 'samp', 'small', 'span',
    'strong', 'sub', 'sup', 'u', 'var',
})
VOID_ELEMENTS = frozenset({'br', 'img'})

TAG_NAME_RE = re.compile(r'<(/?)([A-Za-z][\w:-]*)')
CLOSING_TAG_RE = re.compile(r'</[A-Za-z][\w:-]*\s*>')
BARE_AMP_RE = re.compile(r'&(?!(?:#\d+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);)')

WRAPPERS: tuple[tuple[tuple[str, ...], str, str], ...] = (
    (('strong_em_a', 'strong_em_b'), '<strong><em>', '</em></strong>'),
    (('strong_a', 'strong_b'), '<strong>', '</strong>'),
    (('em_a', 'em_b'), '<em>', '</em>'),
    (('del',), '<del>', '</del>'),
)


def escape_attribute(value: str) -> str:
    """Escape a value for use inside a double-quoted attribute.

    Existing character entities are kept so URLs pass through verbatim.
    """
    value = BARE_AMP_RE.sub('&amp;', value)
    return value.replace('"', '&quot;').replace('<', '&lt;').replace('>', '&gt;')


def _title_attr(title: str | None) -> str:
    return f' title="{escape_attribute(title)}"' if title else ''


def _rewrite(match: re.Match[str]) -> str:
    kind = match.lastgroup
    if kind in ('comment', 'placeholder', 'tag', 'entity'):
        return match.group(0)
    if kind == 'escape':
        return html.escape(match.group(0)[1], quote=False)
    if kind == 'special':
        return html.escape(match.group(0), quote=False)
    if kind == 'paragraph':
        return '</p><p>'
    if kind == 'newline':
        return '<br />'
    if kind == 'image':
        alt = match.group('image_alt')
        alt_attr = f' ac:alt="{escape_attribute(alt)}"' if alt else ''
        title_attr = f' ac:title="{escape_attribute(match.group("image_title"))}"' if match.group('image_title') else ''
        url = escape_attribute(match.group('image_url'))
        return f'<ac:image{alt_attr}{title_attr}><ri:url ri:value="{url}" /></ac:image>'
    if kind == 'link':
        url = escape_attribute(match.group('link_url'))
        text = format_inline(match.group('link_text'))
        return f'<a href="{url}"{_title_attr(match.group("link_title"))}>{text}</a>'
    if kind == 'autolink':
        url = match.group('autolink_url')
        return f'<a href="{escape_attribute(url)}">{html.escape(url, quote=False)}</a>'

    for groups, opening, closing in WRAPPERS:
        for group in groups:
            inner = match.group(group)
            if inner is not None:
                return f'{opening}{format_inline(inner)}{closing}'

    return match.group(0)


def format_inline(text: str) -> str:
    """Rewrite inline Markdown constructs into storage format.

    Args:
        text: Text outside code placeholders (may contain placeholders)

    Returns:
        Storage format fragment
    """
    if HR_RE.match(text):
        return '<hr />'

    pieces: list[tuple[str | None, str]] = []
    position = 0
    for match in INLINE_RE.finditer(text):
        pieces.append((None, text[position:match.start()]))
        pieces.append((match.lastgroup, _rewrite(match)))
        position = match.end()
    pieces.append((None, text[position:]))
    return _join_balanced(pieces)


def _join_balanced(pieces: list[tuple[str | None, str]]) -> str:
    """Join rewritten pieces, escaping raw tags that would break nesting.

    Raw tags are kept when they name a known inline element and either are
    void or close in order before the next paragraph break.
    """
    accepted: set[int] = set()
    open_tags: list[tuple[str, int]] = []
    for index, (kind, text) in enumerate(pieces):
        if kind == 'paragraph':
            open_tags.clear()
        if kind != 'tag':
            continue
        name_match = TAG_NAME_RE.match(text)
        assert name_match is not None
        closing, name = name_match.groups()
        if name not in INLINE_ELEMENTS:
            continue
        if closing:
            if CLOSING_TAG_RE.fullmatch(text) and open_tags and open_tags[-1][0] == name:
                accepted.update((open_tags.pop()[1], index))
        elif name in VOID_ELEMENTS or text.endswith('/>'):
            accepted.add(index)
        else:
            open_tags.append((name, index))

    output = []
    for index, (kind, text) in enumerate(pieces):
        if kind == 'tag':
            if index in accepted:
                text = BARE_AMP_RE.sub('&amp;', text)
            else:
                text = html.escape(text, quote=False)
        output.append(text)
    return ''.join(output)
