"""Renderers package for turning wikitext field values into HTML."""

from .base_renderer import Renderer
from .api_renderer import ApiRenderer
from .markdown_renderer import MarkdownRenderer
from .field_renderer import FieldRenderer


def create_renderer(config: dict, client=None, page_prefix: str = '', logger=None) -> Renderer:
    """Create the renderer selected by ``rendering.engine``.

    Args:
        config: Configuration dictionary
        client: WikiClient used by the API engine
        page_prefix: Link prefix used by the markdown engine
        logger: Logger instance

    Returns:
        Renderer instance

    Raises:
        ValueError: If the engine is unknown or lacks its client
    """
    engine = config.get('rendering', {}).get('engine', 'api')

    if engine == 'api':
        if client is None:
            raise ValueError("The 'api' rendering engine requires a wiki API client")
        return ApiRenderer(client, logger)
    elif engine == 'markdown':
        return MarkdownRenderer(page_prefix, logger)
    else:
        raise ValueError(f"Invalid rendering engine: {engine}. Must be 'api' or 'markdown'.")


__all__ = [
    'Renderer',
    'ApiRenderer',
    'MarkdownRenderer',
    'FieldRenderer',
    'create_renderer'
]
