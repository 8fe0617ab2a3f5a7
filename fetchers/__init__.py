"""Fetchers package for resolving wiki pages via the Action API or an XML dump."""

from .base_fetcher import FetcherError, PageDataError, PageResolver
from .api_fetcher import ApiPageResolver
from .dump_fetcher import DumpPageResolver

class ResolverFactory:
    """Factory for creating resolver instances based on configuration."""

    @staticmethod
    def create_resolver(config: dict, logger=None) -> PageResolver:
        """Create appropriate resolver based on config mode.

        Args:
            config: Configuration dictionary
            logger: Logger instance

        Returns:
            PageResolver instance (ApiPageResolver or DumpPageResolver)

        Raises:
            ValueError: If mode is invalid
        """
        mode = config.get('source', {}).get('mode', 'api')

        if mode == 'api':
            return ApiPageResolver(config, logger)
        elif mode == 'dump':
            return DumpPageResolver(config, logger)
        else:
            raise ValueError(f"Invalid source mode: {mode}. Must be 'api' or 'dump'.")

__all__ = [
    'PageResolver',
    'FetcherError',
    'PageDataError',
    'ApiPageResolver',
    'DumpPageResolver',
    'ResolverFactory'
]
