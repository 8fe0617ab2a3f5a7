"""
Orchestration package for coordinating export runs.

This package provides the export controller that sequences page resolution,
field extraction, rendering and streaming serialization, together with the
output sinks and pacers it writes through.
"""

from .export_controller import ExportController, ExportError, parse_revision_date
from .pacing import NullPacer, Pacer, SleepPacer
from .sinks import FileSink, OutputSink, StreamSink

__all__ = [
    'ExportController',
    'ExportError',
    'parse_revision_date',
    'Pacer',
    'SleepPacer',
    'NullPacer',
    'OutputSink',
    'FileSink',
    'StreamSink'
]
