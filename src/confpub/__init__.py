"""confpub - publish Markdown documents to Confluence."""

__version__ = '0.1.0'
