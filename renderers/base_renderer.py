"""Abstract wikitext renderer interface."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional


class Renderer(ABC):
    """Renders a piece of wikitext into HTML.

    ``render`` never raises: on backend failure the original text is
    returned unchanged and a warning is logged.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('semantic_json_export.renderers')

    def render(self, text: Any, title: Optional[str] = None) -> Any:
        """
        Render wikitext to HTML.

        Args:
            text: Wikitext to render (non-string or empty values are returned as is)
            title: Title of the page providing context for the rendering

        Returns:
            Rendered HTML, or the original text if rendering failed
        """
        if not text or not isinstance(text, str):
            return text

        try:
            html = self._render(text, title)
        except Exception as e:
            self.logger.warning(f"Failed to render field of '{title}': {str(e)}")
            return text

        if html is None:
            self.logger.debug(f"Renderer returned no text for '{title}', keeping original")
            return text
        return html

    @abstractmethod
    def _render(self, text: str, title: Optional[str]) -> Optional[str]:
        """Backend rendering; may raise or return None on failure."""
        pass


__all__ = ['Renderer']
