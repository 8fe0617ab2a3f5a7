"""Post-processor rendering selected fields of a field tree to HTML."""

import logging
import re
from typing import Dict, Iterable, Optional

from models import FieldNode, Leaf, Multiple, Single
from .base_renderer import Renderer

logger = logging.getLogger('semantic_json_export.renderers.fields')

COMMENT_PATTERN = re.compile(r'<!--.*?-->', re.DOTALL)


class FieldRenderer:
    """Rewrites eligible text leaves of a field tree into rendered HTML, in place."""

    def __init__(self, renderer: Renderer, fields_to_parse: Optional[Iterable[str]] = None):
        self.renderer = renderer
        self.fields_to_parse = {name.strip() for name in (fields_to_parse or []) if name and name.strip()}

    def render_fields(self, tree: Dict[str, FieldNode], title: Optional[str] = None) -> Dict[str, FieldNode]:
        """
        Render all eligible fields of a page's field tree.

        Args:
            tree: Template name to node mapping, modified in place
            title: Page title passed to the renderer as context

        Returns:
            The same mapping
        """
        if not self.fields_to_parse:
            return tree

        for key, node in tree.items():
            self._render_node(key, node, title)
        return tree

    def _render_node(self, key: str, node: FieldNode, title: Optional[str]) -> None:
        if isinstance(node, Leaf):
            if key in self.fields_to_parse and isinstance(node.value, str) and node.value:
                node.value = self.render_text(node.value, title)
        elif isinstance(node, Single):
            for child_key, child in node.fields.items():
                self._render_node(child_key, child, title)
        elif isinstance(node, Multiple):
            for item in node.items:
                # list positions are never field names
                if not isinstance(item, Leaf):
                    self._render_node('', item, title)

    def render_text(self, text: str, title: Optional[str] = None) -> str:
        """Render one value and drop HTML comments from the result."""
        rendered = self.renderer.render(text, title)
        if not isinstance(rendered, str):
            return text
        return COMMENT_PATTERN.sub('', rendered)


__all__ = ['FieldRenderer', 'COMMENT_PATTERN']
