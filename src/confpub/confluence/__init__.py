"""Confluence integration for confpub.

This package provides the Confluence REST API client used as the
remote document store.
"""

from .client import ConfluenceClient

__all__ = ['ConfluenceClient']
