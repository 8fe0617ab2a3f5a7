"""Abstract page resolver interface and common functionality."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dateutil.parser import isoparse

from models import PageData, PageRef, SiteInfo


class FetcherError(Exception):
    """Base exception for resolver-related errors."""
    pass


class PageDataError(FetcherError):
    """Exception for pages whose content or metadata cannot be read."""
    pass


class PageResolver(ABC):
    """Abstract base class for wiki page resolvers (host adapters)."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, logger=None):
        """
        Initialize base resolver with configuration and logger.

        Args:
            config: Configuration dictionary
            logger: Logger instance (optional, uses module logger if not provided)
        """
        self.config = config or {}
        self.logger = logger or logging.getLogger('semantic_json_export.fetcher')
        self._page_cache: Dict[str, PageData] = {}

    @abstractmethod
    def resolve(self, name: str) -> Optional[PageRef]:
        """
        Resolve a page name (with namespace prefix) to a PageRef.

        Args:
            name: Page name such as "Main Page" or "Category:Tools"

        Returns:
            PageRef, or None if the name is invalid or the page does not exist
        """
        pass

    @abstractmethod
    def resolve_id(self, page_id: int) -> Optional[PageRef]:
        """
        Resolve a page id to a PageRef.

        Returns:
            PageRef, or None if no page has this id
        """
        pass

    @abstractmethod
    def get_page_data(self, ref: PageRef) -> PageData:
        """
        Fetch raw content and metadata of a page.

        Raises:
            PageDataError: If the page content cannot be read
        """
        pass

    @abstractmethod
    def get_latest_revision(self, ref: PageRef) -> Optional[datetime]:
        """Return the timestamp of the latest revision of a page."""
        pass

    @abstractmethod
    def get_max_page_id(self) -> int:
        """Return the highest page id in use (0 for an empty wiki)."""
        pass

    @abstractmethod
    def list_pages(self, namespaces: List[int], offset: int = 0, limit: int = 30) -> List[PageRef]:
        """
        List existing pages of the given namespaces ordered by page id.

        Offset and limit count existing pages, not page ids.
        """
        pass

    @abstractmethod
    def get_category_members(self, category: str, limit: int = 100) -> List[PageRef]:
        """List up to ``limit`` pages of a category (name with or without prefix)."""
        pass

    @abstractmethod
    def get_linked_pages(self, ref: PageRef) -> List[PageRef]:
        """List existing pages linked from a page."""
        pass

    @abstractmethod
    def get_site_info(self) -> SiteInfo:
        """Return site-wide metadata and statistics."""
        pass

    def clear_cache(self) -> None:
        """Drop per-page cached data."""
        self._page_cache.clear()

    def _parse_date(self, date_str: Optional[str]) -> Optional[datetime]:
        """
        Parse an ISO 8601 timestamp, normalized to an aware UTC datetime.

        Args:
            date_str: Date string to parse

        Returns:
            Parsed datetime or None if parsing fails
        """
        if not date_str:
            return None

        try:
            parsed = isoparse(date_str)
        except (ValueError, TypeError):
            self.logger.warning(f"Invalid date format: {date_str}")
            return None

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


__all__ = ['PageResolver', 'FetcherError', 'PageDataError']
