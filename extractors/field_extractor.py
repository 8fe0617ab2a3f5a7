"""Field extractor turning template blocks of a page into a field tree."""

import logging
from typing import Dict, Iterable, List, Optional

from models import DEFAULT_MULTIPLE_TEMPLATES, DEFAULT_TEMPLATES, FieldNode, Leaf, Multiple, Single
from .template_locator import TemplateBlock, TemplateBlockLocator

logger = logging.getLogger('semantic_json_export.extractors.fields')


class FieldExtractor:
    """Extracts the fields of configured templates from raw wikitext.

    Non-repeatable templates yield the field map of their first occurrence
    (an empty map when absent). Repeatable templates yield the ordered list
    of all occurrences (an empty list when absent).
    """

    def __init__(
        self,
        templates: Optional[Iterable[str]] = None,
        multiple_templates: Optional[Iterable[str]] = None,
        locator: Optional[TemplateBlockLocator] = None
    ):
        self.templates: List[str] = list(DEFAULT_TEMPLATES if templates is None else templates)
        self.multiple_templates = set(DEFAULT_MULTIPLE_TEMPLATES if multiple_templates is None else multiple_templates)
        self.locator = locator or TemplateBlockLocator()

    def extract(self, text: str) -> Dict[str, FieldNode]:
        """
        Extract all configured templates, in configured order.

        Args:
            text: Raw page wikitext

        Returns:
            Mapping of template name to ``Single`` or ``Multiple`` node
        """
        result: Dict[str, FieldNode] = {}
        for name in self.templates:
            result[name] = self.extract_template(name, text, name in self.multiple_templates)
        return result

    def extract_template(self, name: str, text: str, multiple: bool = True) -> FieldNode:
        """Extract the occurrences of one template."""
        blocks = []
        for block in self.iter_blocks(name, text):
            if not multiple:
                return self._to_node(block)
            blocks.append(self._to_node(block))

        if multiple:
            logger.debug(f"Found {len(blocks)} '{name}' blocks")
            return Multiple(blocks)
        return Single()

    def iter_blocks(self, name: str, text: str):
        """Yield successive blocks of a template, scanning past each consumed block."""
        position = 0
        while True:
            block = self.locator.find(name, text, position)
            if block is None:
                return
            yield block
            position = block.end

    @staticmethod
    def _to_node(block: TemplateBlock) -> Single:
        return Single({key: Leaf(value) for key, value in block.fields.items()})


__all__ = ['FieldExtractor']
