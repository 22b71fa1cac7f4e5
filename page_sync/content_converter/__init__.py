"""Display conversion of rendered page HTML to markdown."""

from .markdown_converter import MarkdownConverter

__all__ = ['MarkdownConverter']
