"""Extractors package for reading template fields out of wikitext."""

from .template_locator import TemplateBlock, TemplateBlockLocator
from .field_extractor import FieldExtractor

__all__ = [
    'FieldExtractor',
    'TemplateBlock',
    'TemplateBlockLocator'
]
