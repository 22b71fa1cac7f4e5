"""Markdown rendering of a page's server-side HTML view.

Only used for display: the rendered view is never written back, so the
conversion is one-way (HTML to markdown) and does not need to preserve
Confluence macros.
"""

from typing import Optional

from markdownify import MarkdownConverter as BaseMarkdownConverter

from ..confluence_client.errors import ConversionError


class _PageMarkdownConverter(BaseMarkdownConverter):
    """markdownify converter producing pipe tables and ATX headings."""

    def __init__(self, **options):
        options.setdefault('heading_style', 'atx')
        options.setdefault('bullets', '-')
        options.setdefault('strong_em_symbol', '*')
        super().__init__(**options)

    def convert_style(self, el, text, parent_tags):
        # styled_view embeds the page stylesheet
        return ''

    def convert_script(self, el, text, parent_tags):
        return ''

    def convert_p(self, el, text, parent_tags):
        """Keep paragraphs inside table cells on one row."""
        text = text.strip()
        if not text:
            return ''
        if 'td' in parent_tags or 'th' in parent_tags:
            return text + '<br>'
        if '_inline' in parent_tags:
            return ' ' + text + ' '
        return '\n\n%s\n\n' % text

    def convert_td(self, el, text, parent_tags):
        colspan = 1
        if 'colspan' in el.attrs and el['colspan'].isdigit():
            colspan = max(1, min(1000, int(el['colspan'])))
        cell_text = text.strip().replace('\n', ' ')
        while cell_text.endswith('<br>'):
            cell_text = cell_text[:-len('<br>')]
        return ' ' + cell_text + ' |' * colspan

    convert_th = convert_td


class MarkdownConverter:
    """Converts rendered page HTML to markdown.

    Example:
        >>> MarkdownConverter().html_to_markdown("<h1>Title</h1><p>Text</p>")
        '# Title\\n\\nText'
    """

    def html_to_markdown(self, html: Optional[str]) -> str:
        """Convert HTML to markdown; empty input gives an empty string.

        Raises:
            ConversionError: If the HTML cannot be parsed
        """
        if not html:
            return ''
        try:
            return _PageMarkdownConverter().convert(html).strip()
        except Exception as e:
            raise ConversionError(f"Failed to convert page HTML to markdown: {e}") from e
