"""Template block locator for finding ``{{Name|...}}`` blocks in wikitext."""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger('semantic_json_export.extractors.locator')

# Opening and closing delimiters, longest first so "{{{" wins over "{{"
OPENERS = ('{{{', '{{', '[[')
CLOSERS = {'{{{': '}}}', '{{': '}}', '[[': ']]'}


@dataclass
class TemplateBlock:
    """One template occurrence: its position in the text and its fields."""

    name: str
    start: int
    length: int
    fields: Dict[str, str] = field(default_factory=dict)

    @property
    def end(self) -> int:
        return self.start + self.length


class TemplateBlockLocator:
    """Finds template blocks with balanced ``{{ }}``, ``{{{ }}}`` and ``[[ ]]`` nesting."""

    def __init__(self):
        self._patterns: Dict[str, re.Pattern] = {}

    def _pattern(self, name: str) -> re.Pattern:
        if name not in self._patterns:
            self._patterns[name] = re.compile(r'\{\{' + re.escape(name) + r'\s*[|}]', re.IGNORECASE)
        return self._patterns[name]

    def find(self, name: str, text: str, start: int = 0) -> Optional[TemplateBlock]:
        """
        Find the next block of a template at or after ``start``.

        Args:
            name: Template name (matched case-insensitively)
            text: Wikitext to search
            start: Position to search from

        Returns:
            TemplateBlock, or None if no complete block follows
        """
        match = self._pattern(name).search(text, start)
        if match is None:
            return None

        block_start = match.start()
        block_end = self.find_block_end(text, block_start)
        if block_end is None:
            logger.debug(f"Unterminated '{name}' block at offset {block_start}")
            return None

        body = text[block_start + 2:block_end - 2]
        return TemplateBlock(
            name=name,
            start=block_start,
            length=block_end - block_start,
            fields=self.parse_fields(body)
        )

    @staticmethod
    def find_block_end(text: str, start: int) -> Optional[int]:
        """
        Return the position just after the delimiter closing the block opened at ``start``.

        Returns:
            End offset, or None if the block is never closed
        """
        stack: List[str] = []
        i = start
        n = len(text)

        while i < n:
            opener = next((o for o in OPENERS if text.startswith(o, i)), None)
            if opener is not None:
                stack.append(opener)
                i += len(opener)
                continue

            if stack:
                closer = CLOSERS[stack[-1]]
                if text.startswith(closer, i):
                    stack.pop()
                    i += len(closer)
                    if not stack:
                        return i
                    continue

            i += 1

        return None

    @classmethod
    def split_top_level(cls, text: str, separator: str, maxsplit: int = -1) -> List[str]:
        """Split ``text`` at ``separator`` characters outside nested delimiters."""
        parts: List[str] = []
        depth = 0
        last = 0
        i = 0
        n = len(text)

        while i < n:
            opener = next((o for o in OPENERS if text.startswith(o, i)), None)
            if opener is not None:
                depth += 1
                i += len(opener)
                continue

            closer = next((c for c in ('}}}', '}}', ']]') if text.startswith(c, i)), None)
            if closer is not None and depth > 0:
                depth -= 1
                i += len(closer)
                continue

            if depth == 0 and text[i] == separator and (maxsplit < 0 or len(parts) < maxsplit):
                parts.append(text[last:i])
                last = i + 1
            i += 1

        parts.append(text[last:])
        return parts

    @classmethod
    def parse_fields(cls, body: str) -> Dict[str, str]:
        """
        Parse the inside of a template call into fields.

        The first part is the template name. Named parts (``key=value``) keep
        their key, unnamed parts are numbered ``"1"``, ``"2"``, ... in order.
        Keys and values are stripped.
        """
        fields: Dict[str, str] = {}
        position = 0

        for part in cls.split_top_level(body, '|')[1:]:
            key_value = cls.split_top_level(part, '=', maxsplit=1)
            if len(key_value) == 2:
                fields[key_value[0].strip()] = key_value[1].strip()
            else:
                position += 1
                fields[str(position)] = part.strip()

        return fields


__all__ = ['TemplateBlock', 'TemplateBlockLocator']
