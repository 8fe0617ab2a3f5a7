"""Renderer backed by the wiki's own parser (``action=parse``)."""

import logging
from typing import Optional

from wiki_client import WikiClient
from .base_renderer import Renderer


class ApiRenderer(Renderer):
    """Renders wikitext through the MediaWiki API so templates and links resolve exactly."""

    def __init__(self, client: WikiClient, logger: Optional[logging.Logger] = None):
        super().__init__(logger or logging.getLogger('semantic_json_export.renderers.api'))
        self.client = client

    def _render(self, text: str, title: Optional[str]) -> Optional[str]:
        return self.client.parse(text, title=title)


__all__ = ['ApiRenderer']
