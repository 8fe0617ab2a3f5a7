"""API resolver implementation for reading pages via the MediaWiki Action API."""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import requests

from models import NS_CATEGORY, PageData, PageRef, SiteInfo
from wiki_client import ID_BATCH_SIZE, WikiApiError, WikiClient
from .base_fetcher import FetcherError, PageDataError, PageResolver

logger = logging.getLogger('semantic_json_export.fetcher.api')


class ApiPageResolver(PageResolver):
    """Resolves pages, revisions, categories and statistics through api.php."""

    def __init__(self, config: Dict[str, Any], logger=None, client: Optional[WikiClient] = None):
        """
        Initialize API resolver with configuration.

        Args:
            config: Configuration dictionary with wiki, export and advanced settings
            logger: Logger instance (optional)
            client: Preconfigured WikiClient (built from config when omitted)
        """
        super().__init__(config, logger)

        self.client = client or WikiClient.from_config(config)
        self.display_title_property = config.get('export', {}).get('display_title_property', 'Display title of')

        self._namespaces: Optional[Dict[int, Dict[str, Any]]] = None
        self._id_cache: Dict[int, Optional[PageRef]] = {}

        self.logger.info(f"Initialized ApiPageResolver for {self.client.api_url}")

    # Namespace handling

    def _get_namespaces(self) -> Dict[int, Dict[str, Any]]:
        """Load namespace names once per resolver."""
        if self._namespaces is None:
            self.client.login()
            info = self.client.get_site_info()
            self._namespaces = {
                int(ns_id): ns for ns_id, ns in info.get('namespaces', {}).items()
            }
            logger.debug(f"Loaded {len(self._namespaces)} namespaces")
        return self._namespaces

    def _ref_from_page(self, page: Dict[str, Any]) -> PageRef:
        """Build a PageRef from an API page object (``ns``, ``title``, ``pageid``)."""
        ns = int(page.get('ns', 0))
        ns_info = self._get_namespaces().get(ns, {})
        return PageRef.from_title(
            page['title'],
            namespace=ns,
            namespace_name=ns_info.get('name'),
            page_id=page.get('pageid'),
            canonical_name=ns_info.get('canonical')
        )

    @staticmethod
    def _exists(page: Dict[str, Any]) -> bool:
        return not page.get('missing') and not page.get('invalid') and 'title' in page

    # Resolution

    def resolve(self, name: str) -> Optional[PageRef]:
        if not name or not name.strip():
            return None

        try:
            pages = self.client.get_pages(titles=[name.strip()])
        except WikiApiError as e:
            self.logger.debug(f"Cannot resolve '{name}': {e}")
            return None

        for page in pages:
            if self._exists(page):
                return self._ref_from_page(page)
        return None

    def resolve_id(self, page_id: int) -> Optional[PageRef]:
        if page_id not in self._id_cache:
            # Prefetch the following ids since full-site scans walk them in order
            batch = list(range(page_id, page_id + ID_BATCH_SIZE))
            pages = self.client.get_pages(pageids=batch)
            self._id_cache = {pid: None for pid in batch}
            for page in pages:
                if self._exists(page) and page.get('pageid') in self._id_cache:
                    self._id_cache[page['pageid']] = self._ref_from_page(page)
        return self._id_cache.get(page_id)

    def _resolve_titles(self, titles: List[str]) -> List[PageRef]:
        """Resolve titles in API-sized batches, keeping order and dropping missing pages."""
        refs: Dict[str, PageRef] = {}
        for start in range(0, len(titles), ID_BATCH_SIZE):
            for page in self.client.get_pages(titles=titles[start:start + ID_BATCH_SIZE]):
                if self._exists(page):
                    refs[page['title']] = self._ref_from_page(page)
        return [refs[title] for title in titles if title in refs]

    # Page data

    def get_page_data(self, ref: PageRef) -> PageData:
        if ref.hash_key in self._page_cache:
            return self._page_cache[ref.hash_key]

        try:
            page = self.client.get_page_content(ref.full_text)
            if page is None:
                raise PageDataError(f"Page '{ref.full_text}' has no revision")

            revision = page['revisions'][0]
            content = revision['slots']['main'].get('content')
            if content is None:
                raise PageDataError(f"Content of '{ref.full_text}' is hidden or not text")

            first_revision = self.client.get_first_revision(ref.full_text) or {}
            categories = [self._ref_from_page(category) for category in self.client.get_categories(ref.full_text)]

        except (KeyError, IndexError) as e:
            raise PageDataError(f"Malformed revision data for '{ref.full_text}': {e}") from e
        except (WikiApiError, requests.exceptions.RequestException) as e:
            raise PageDataError(f"Failed to fetch '{ref.full_text}': {e}") from e

        data = PageData(
            ref=ref,
            content=content,
            creator=first_revision.get('user'),
            categories=categories,
            latest_revision=self._parse_date(revision.get('timestamp')),
            display_title=self._get_display_title(ref)
        )
        self._page_cache[ref.hash_key] = data
        return data

    def _get_display_title(self, ref: PageRef) -> Optional[str]:
        """
        Read the display title from the semantic property, falling back to page props.

        Returns:
            Display title, or None if neither source has one
        """
        try:
            results = self.client.ask(f"[[:{ref.full_text}]]|?{self.display_title_property}")
            entry = results.get(ref.full_text) or next(iter(results.values()), None)
            values = (entry or {}).get('printouts', {}).get(self.display_title_property) or []
            if values:
                value = values[0]
                return value.get('fulltext') if isinstance(value, dict) else str(value)
        except WikiApiError as e:
            logger.debug(f"Semantic query unavailable for '{ref.full_text}': {e}")

        pages = self.client.get_pages(titles=[ref.full_text], prop='pageprops', ppprop='displaytitle')
        for page in pages:
            title = page.get('pageprops', {}).get('displaytitle')
            if title:
                return title
        return None

    def get_latest_revision(self, ref: PageRef) -> Optional[datetime]:
        pages = self.client.get_pages(titles=[ref.full_text], prop='revisions', rvprop='timestamp')
        for page in pages:
            revisions = page.get('revisions') or []
            if revisions:
                return self._parse_date(revisions[0].get('timestamp'))
        return None

    # Listings

    def _iter_pages(self, namespaces: Iterable[int]) -> Iterable[Dict[str, Any]]:
        for namespace in namespaces:
            yield from self.client.get_all_pages(namespace)

    def get_max_page_id(self) -> int:
        content_namespaces = [ns for ns in self._get_namespaces() if ns >= 0]
        return max((page['pageid'] for page in self._iter_pages(content_namespaces)), default=0)

    def list_pages(self, namespaces: List[int], offset: int = 0, limit: int = 30) -> List[PageRef]:
        pages = sorted(self._iter_pages(namespaces), key=lambda page: page['pageid'])
        return [self._ref_from_page(page) for page in pages[offset:offset + limit]]

    def get_category_members(self, category: str, limit: int = 100) -> List[PageRef]:
        category = category.strip()
        if not category:
            return []

        prefix = self._get_namespaces().get(NS_CATEGORY, {}).get('name') or 'Category'
        if not category.lower().startswith(prefix.lower() + ':') and not category.lower().startswith('category:'):
            category = f"{prefix}:{category}"

        try:
            members = self.client.get_category_members(category, limit=limit)
        except WikiApiError as e:
            self.logger.warning(f"Cannot list members of '{category}': {e}")
            return []

        return [self._ref_from_page(member) for member in members]

    def get_linked_pages(self, ref: PageRef) -> List[PageRef]:
        titles = [link['title'] for link in self.client.get_links(ref.full_text)]
        return self._resolve_titles(titles)

    def get_site_info(self) -> SiteInfo:
        try:
            info = self.client.get_site_info()
        except WikiApiError as e:
            raise FetcherError(f"Failed to read site info: {e}") from e

        general = info.get('general', {})
        statistics = info.get('statistics', {})

        server = general.get('server', '')
        if server.startswith('//'):
            server = 'https:' + server
        article_path = general.get('articlepath', '/wiki/$1')

        return SiteInfo(
            site_name=general.get('sitename', ''),
            language_code=general.get('lang', ''),
            page_prefix=server + article_path.replace('$1', ''),
            main_page=general.get('mainpage'),
            main_page_url=general.get('base'),
            generator=general.get('generator'),
            page_count=statistics.get('pages', 0),
            content_page_count=statistics.get('articles', 0),
            media_count=statistics.get('images', 0),
            edit_count=statistics.get('edits', 0),
            user_count=statistics.get('users', 0),
            admin_count=statistics.get('admins', 0)
        )


__all__ = ['ApiPageResolver']
