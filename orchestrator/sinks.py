"""Output sinks receiving flushed export chunks."""

import logging
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, Optional

logger = logging.getLogger('semantic_json_export.orchestrator.sinks')


class OutputSink(ABC):
    """Destination of serialized output. Opened at run start, closed on every exit path."""

    @abstractmethod
    def open(self) -> None:
        """Prepare the sink for writing.

        Raises:
            OSError: If the destination cannot be opened
        """
        pass

    @abstractmethod
    def write(self, chunk: str) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self) -> 'OutputSink':
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class FileSink(OutputSink):
    """Writes output to a UTF-8 file, truncating it on open."""

    def __init__(self, path: str):
        self.path = Path(path)
        self._handle: Optional[IO[str]] = None

    def open(self) -> None:
        self._handle = open(self.path, 'w', encoding='utf-8')
        logger.debug(f"Opened output file {self.path}")

    def write(self, chunk: str) -> None:
        if self._handle is None:
            raise ValueError(f"Output file {self.path} is not open")
        self._handle.write(chunk)

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            logger.debug(f"Closed output file {self.path}")


class StreamSink(OutputSink):
    """Writes output to a text stream (stdout by default) and flushes after each chunk."""

    def __init__(self, stream: Optional[IO[str]] = None):
        self.stream = stream

    def open(self) -> None:
        if self.stream is None:
            self.stream = sys.stdout

    def write(self, chunk: str) -> None:
        self.stream.write(chunk)
        self.stream.flush()

    def close(self) -> None:
        # The stream belongs to the caller
        if self.stream is not None:
            self.stream.flush()


__all__ = ['OutputSink', 'FileSink', 'StreamSink']
