"""Streaming JSON serializer producing ``{"results":[...]}`` documents in chunks."""

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Union

from models import FieldNode, PageRef

logger = logging.getLogger('semantic_json_export.serializers.json')

CONTENT_TYPE = 'application/json; charset=UTF-8'


class SerializerStateError(Exception):
    """Raised when records are added outside of a started serialization."""
    pass


class SerializerState(Enum):
    IDLE = "idle"
    STARTED = "started"
    FINISHED = "finished"


class JsonSerializer:
    """Accumulates page records into a JSON array body that can be flushed in pieces.

    Concatenating every ``flush_content()`` result between ``start()`` and
    ``finish()`` yields one valid JSON document.
    """

    OPENER = '{"results":['
    CLOSER = ']}'

    def __init__(self):
        self.state = SerializerState.IDLE
        self.buffer = ''
        self.pages: List[Dict[str, Any]] = []
        self.has_content = False

    def clear(self) -> None:
        """Reset to idle and discard anything buffered."""
        self.state = SerializerState.IDLE
        self.buffer = ''
        self.pages = []
        self.has_content = False

    def start(self) -> None:
        """Open the results array."""
        if self.state == SerializerState.STARTED:
            raise SerializerStateError("Serialization already started")
        self.state = SerializerState.STARTED
        self.buffer = self.OPENER
        self.has_content = False

    def finish(self) -> None:
        """Close the results array."""
        if self.state != SerializerState.STARTED:
            raise SerializerStateError(f"Cannot finish serialization in state '{self.state.value}'")
        self.buffer += self.CLOSER
        self.state = SerializerState.FINISHED

    def add_page(self, page: PageRef, page_info: Mapping[str, Any],
                 content: Union[Mapping[str, FieldNode], Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Append one page record.

        Args:
            page: Page identity
            page_info: Metadata merged into the record (creator, categories, display title)
            content: Field tree (or plain values) stored under ``content``

        Returns:
            The record as written

        Raises:
            SerializerStateError: If serialization is not started
        """
        record: Dict[str, Any] = {
            'namespace': page.namespace_key,
            'id': page.dbkey,
            'title': page.text
        }
        record.update(page_info)
        record['content'] = self._content_to_python(content)

        self._append(record)
        self.pages.append(record)
        return record

    def add_resource(self, resource: Mapping[str, Any]) -> None:
        """Append a non-page object such as site info or a continuation link."""
        self._append(dict(resource))

    def flush_content(self) -> str:
        """Return and clear buffered output; empty string when nothing is pending."""
        result = self.buffer
        self.buffer = ''
        self.pages = []
        return result

    def _append(self, obj: Dict[str, Any]) -> None:
        if self.state != SerializerState.STARTED:
            raise SerializerStateError(f"Cannot add records in state '{self.state.value}'")

        if self.has_content:
            self.buffer += ','
        self.buffer += json.dumps(obj, ensure_ascii=False)
        self.has_content = True

    @staticmethod
    def _content_to_python(content: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            key: value.to_python() if hasattr(value, 'to_python') else value
            for key, value in content.items()
        }


__all__ = ['JsonSerializer', 'SerializerState', 'SerializerStateError', 'CONTENT_TYPE']
