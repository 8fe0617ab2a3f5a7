"""
Offline renderer for dump mode.

Common inline wikitext (bold, italics, headings, lists, internal and
external links) is rewritten to Markdown and converted to HTML with the
``markdown`` library. Templates and parser functions are left as text.
"""

import logging
import re
from typing import Optional
from urllib.parse import quote

import markdown as md

from .base_renderer import Renderer


class MarkdownRenderer(Renderer):
    """Best-effort wikitext to HTML conversion without a wiki server."""

    HEADING_PATTERN = re.compile(r'^(={1,6})\s*(.+?)\s*\1\s*$', re.MULTILINE)
    BOLD_ITALIC_PATTERN = re.compile(r"'''''(.+?)'''''")
    BOLD_PATTERN = re.compile(r"'''(.+?)'''")
    ITALIC_PATTERN = re.compile(r"''(.+?)''")
    INTERNAL_LINK_PATTERN = re.compile(r'\[\[\s*:?([^\]\|]+?)\s*(?:\|([^\]]*))?\]\]')
    EXTERNAL_LINK_PATTERN = re.compile(r'\[(https?://[^\s\]]+)(?:\s+([^\]]+))?\]')
    ORDERED_ITEM_PATTERN = re.compile(r'^#\s*', re.MULTILINE)

    def __init__(self, page_prefix: str = '', logger: Optional[logging.Logger] = None):
        """
        Initialize markdown renderer.

        Args:
            page_prefix: URL prefix for internal links (e.g. "https://wiki.example.org/wiki/")
            logger: Optional logger instance
        """
        super().__init__(logger or logging.getLogger('semantic_json_export.renderers.markdown'))
        self.page_prefix = page_prefix or ''

        self.md = md.Markdown(
            extensions=[
                'extra',
                'nl2br',
                'sane_lists'
            ]
        )

    def _render(self, text: str, title: Optional[str]) -> Optional[str]:
        self.md.reset()
        html = self.md.convert(self.wikitext_to_markdown(text))
        self.logger.debug(f"Converted {len(text)} chars of wikitext to {len(html)} chars of HTML")
        return html

    def wikitext_to_markdown(self, text: str) -> str:
        """Rewrite the supported wikitext constructs to Markdown."""
        # Numbered items first, headings below become "#" lines
        text = self.ORDERED_ITEM_PATTERN.sub('1. ', text)
        text = self.HEADING_PATTERN.sub(lambda m: '#' * len(m.group(1)) + ' ' + m.group(2), text)
        text = self.BOLD_ITALIC_PATTERN.sub(r'***\1***', text)
        text = self.BOLD_PATTERN.sub(r'**\1**', text)
        text = self.ITALIC_PATTERN.sub(r'*\1*', text)
        text = self.INTERNAL_LINK_PATTERN.sub(self._internal_link, text)
        text = self.EXTERNAL_LINK_PATTERN.sub(
            lambda m: f"[{m.group(2) or m.group(1)}]({m.group(1)})", text
        )
        return text

    def _internal_link(self, match) -> str:
        target = match.group(1).strip()
        label = (match.group(2) or target).strip()
        url = self.page_prefix + quote(target.replace(' ', '_'), safe='/:')
        return f"[{label}]({url})"


__all__ = ['MarkdownRenderer']
