"""Serializers package for streaming export output."""

from .json_serializer import CONTENT_TYPE, JsonSerializer, SerializerState, SerializerStateError

__all__ = [
    'CONTENT_TYPE',
    'JsonSerializer',
    'SerializerState',
    'SerializerStateError'
]
