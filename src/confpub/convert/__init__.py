"""Markdown to Confluence storage format conversion."""

from .context import CodeFragment, ConversionContext, DiagramBlock
from .converter import ConvertResult, MarkdownConverter

__all__ = [
    'CodeFragment',
    'ConversionContext',
    'ConvertResult',
    'DiagramBlock',
    'MarkdownConverter',
]
