"""Code span protection.

Fenced and inline code are swapped for opaque placeholders before any other
conversion runs and restored as Confluence markup at the very end, so that
formatting rules never touch code content.
"""

import html
import re
from collections.abc import Collection

from confpub.convert.context import DIAGRAM_PLACEHOLDER_PREFIX, CodeFragment, ConversionContext

FENCE_RE = re.compile(
    r'^(?P<indent>[ \t]*)(?P<fence>`{3,}|~{3,})[ \t]*(?P<lang>[^\s`]*)[^\n]*\n'
    r'(?P<body>.*?)'
    r'^[ \t]*(?P=fence)[ \t]*$',
    re.MULTILINE | re.DOTALL,
)

INLINE_CODE_RE = re.compile(r'(?<!`)(?P<ticks>`{1,2})(?!`)(?P<code>[^\n]+?)(?<!`)(?P=ticks)(?!`)')

# Aliases mapped to language names known to the Confluence code macro.
LANGUAGE_ALIASES: dict[str, str] = {
    'js': 'javascript',
    'jsx': 'javascript',
    'json': 'javascript',
    'ts': 'typescript',
    'tsx': 'typescript',
    'sh': 'bash',
    'shell': 'bash',
    'zsh': 'bash',
    'py': 'python',
    'yml': 'yaml',
    'c++': 'cpp',
    'cs': 'csharp',
    'c#': 'csharp',
    'rb': 'ruby',
    'ps1': 'powershell',
    'dockerfile': 'docker',
    'patch': 'diff',
    'kt': 'kotlin',
    'golang': 'go',
}


def map_language(label: str | None) -> str:
    """Map a fence label to a Confluence code macro language.

    Args:
        label: Language label from the fence info string

    Returns:
        Canonical language name, the label itself if unknown, "text" if absent
    """
    if not label:
        return 'text'
    return LANGUAGE_ALIASES.get(label.lower(), label)


def cdata(text: str) -> str:
    """Wrap text in a CDATA section, splitting any embedded terminator.

    Diagram placeholder text is split the same way so code content can never
    be mistaken for a placeholder.
    """
    text = text.replace(']]>', ']]]]><![CDATA[>')
    text = text.replace(DIAGRAM_PLACEHOLDER_PREFIX, '<!--]]><![CDATA[confpub:')
    return f'<![CDATA[{text}]]>'


def code_macro(language: str, text: str, title: str | None = None) -> str:
    """Render a Confluence code macro.

    Args:
        language: Macro language parameter
        text: Code content, stored verbatim
        title: Optional macro title

    Returns:
        Storage format markup
    """
    parts = [
        '<ac:structured-macro ac:name="code">',
        f'<ac:parameter ac:name="language">{html.escape(language)}</ac:parameter>',
    ]
    if title:
        parts.append(f'<ac:parameter ac:name="title">{html.escape(title)}</ac:parameter>')
    parts.append('<ac:parameter ac:name="linenumbers">true</ac:parameter>')
    parts.append(f'<ac:plain-text-body>{cdata(text)}</ac:plain-text-body>')
    parts.append('</ac:structured-macro>')
    return ''.join(parts)


def render_fragment(fragment: CodeFragment) -> str:
    """Render a protected fragment as storage format markup."""
    if fragment.block:
        return code_macro(map_language(fragment.language), fragment.raw_text)
    return f'<code>{html.escape(fragment.raw_text)}</code>'


def _fence_body(match: re.Match[str]) -> str:
    """Return the fence body with the fence indentation removed."""
    indent = match.group('indent')
    body = match.group('body')
    if body.endswith('\n'):
        body = body[:-1]
    if indent:
        lines = [line[len(indent):] if line.startswith(indent) else line for line in body.split('\n')]
        body = '\n'.join(lines)
    return body


def protect(
    text: str,
    context: ConversionContext,
    passthrough_languages: Collection[str] = (),
) -> tuple[str, dict[str, CodeFragment]]:
    """Replace fenced and inline code with placeholders.

    Fences whose label is in passthrough_languages are left verbatim and are
    excluded from inline code matching, so a later stage can claim them.

    Args:
        text: Markdown source
        context: Conversion context minting the placeholders
        passthrough_languages: Fence labels to leave in place (case-sensitive)

    Returns:
        Tuple of (protected text, placeholder to fragment mapping)
    """
    segments: list[tuple[str, bool]] = []
    position = 0
    for match in FENCE_RE.finditer(text):
        segments.append((text[position:match.start()], False))
        language = match.group('lang')
        if language and language in passthrough_languages:
            segments.append((match.group(0), True))
        else:
            placeholder = context.mint('code')
            context.fragments[placeholder] = CodeFragment(
                language=language, raw_text=_fence_body(match), block=True
            )
            segments.append((match.group('indent') + placeholder, True))
        position = match.end()
    segments.append((text[position:], False))

    def replace_inline(match: re.Match[str]) -> str:
        code = match.group('code')
        if len(code) > 2 and code.startswith(' ') and code.endswith(' '):
            code = code[1:-1]
        placeholder = context.mint('code')
        context.fragments[placeholder] = CodeFragment(language='', raw_text=code, block=False)
        return placeholder

    protected = ''.join(
        segment if opaque else INLINE_CODE_RE.sub(replace_inline, segment)
        for segment, opaque in segments
    )
    return protected, context.fragments


def restore(text: str, fragments: dict[str, CodeFragment]) -> str:
    """Substitute every placeholder with its rendered code markup.

    Args:
        text: Text containing placeholders
        fragments: Placeholder to fragment mapping from protect()

    Returns:
        Text with code markup restored
    """
    for placeholder, fragment in fragments.items():
        text = text.replace(placeholder, render_fragment(fragment))
    return text
