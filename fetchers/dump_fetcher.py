"""Dump resolver implementation for reading pages from a MediaWiki XML export."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlparse

from bs4 import BeautifulSoup

from models import NS_CATEGORY, NS_FILE, NS_MAIN, PageData, PageRef, SiteInfo
from .base_fetcher import FetcherError, PageDataError, PageResolver

logger = logging.getLogger('semantic_json_export.fetcher.dump')

# Canonical names are not part of the dump, only the local ones
CANONICAL_NAMESPACES = {
    -2: 'Media',
    -1: 'Special',
    1: 'Talk',
    2: 'User',
    3: 'User talk',
    4: 'Project',
    5: 'Project talk',
    6: 'File',
    7: 'File talk',
    8: 'MediaWiki',
    9: 'MediaWiki talk',
    10: 'Template',
    11: 'Template talk',
    12: 'Help',
    13: 'Help talk',
    14: 'Category',
    15: 'Category talk',
    102: 'Property',
    103: 'Property talk',
    104: 'Type',
    105: 'Type talk',
}

LINK_PATTERN = re.compile(r'\[\[\s*(:?)\s*([^\]\|#\n]+)(?:#[^\]\|]*)?(?:\|[^\]]*)?\]\]')
DISPLAYTITLE_PATTERN = re.compile(r'\{\{\s*DISPLAYTITLE\s*:\s*(.+?)\s*\}\}', re.IGNORECASE)


@dataclass
class DumpPage:
    """One page of the dump with the revision data needed for export."""

    page_id: int
    namespace: int
    title: str
    text: Optional[str] = None
    creator: Optional[str] = None
    latest_timestamp: Optional[str] = None
    revision_count: int = 0
    redirect: bool = False
    contributors: List[str] = field(default_factory=list)


class DumpPageResolver(PageResolver):
    """Resolves pages from a MediaWiki XML dump (Special:Export or dumpBackup.php output)."""

    def __init__(self, config: Dict[str, Any], logger=None):
        """
        Initialize dump resolver and index the dump.

        Args:
            config: Configuration dictionary with source.dump_path
            logger: Logger instance (optional)
        """
        super().__init__(config, logger)

        dump_path = config.get('source', {}).get('dump_path')
        if not dump_path:
            raise ValueError("source.dump_path is required for dump resolver")

        self.dump_path = Path(dump_path).resolve()
        if not self.dump_path.is_file():
            raise FileNotFoundError(f"Dump file not found: {self.dump_path}")

        self.display_title_property = config.get('export', {}).get('display_title_property', 'Display title of')

        self.site: Dict[str, Any] = {}
        self.namespaces: Dict[int, str] = {NS_MAIN: ''}
        self._pages_by_id: Dict[int, DumpPage] = {}
        self._pages_by_title: Dict[str, DumpPage] = {}

        self._load_dump()

        self.logger.info(f"Initialized DumpPageResolver for {self.dump_path} ({len(self._pages_by_id)} pages)")

    # Loading

    def _load_dump(self) -> None:
        """Parse the dump file and build the page indexes."""
        try:
            with open(self.dump_path, 'rb') as f:
                soup = BeautifulSoup(f, 'lxml-xml')
        except OSError as e:
            raise FetcherError(f"Cannot read dump {self.dump_path}: {e}") from e

        siteinfo = soup.find('siteinfo')
        if siteinfo is not None:
            for name in ['sitename', 'dbname', 'base', 'generator']:
                tag = siteinfo.find(name)
                self.site[name] = tag.get_text(strip=True) if tag else None
            for ns_tag in siteinfo.find_all('namespace'):
                try:
                    self.namespaces[int(ns_tag.get('key'))] = ns_tag.get_text(strip=True)
                except (TypeError, ValueError):
                    logger.warning(f"Skipping namespace with invalid key: {ns_tag.get('key')}")

        root = soup.find('mediawiki')
        self.site['lang'] = (root.get('xml:lang') or root.get('lang')) if root is not None else None

        for page_tag in soup.find_all('page'):
            try:
                page = self._parse_page(page_tag)
            except (AttributeError, ValueError) as e:
                logger.warning(f"Skipping malformed page entry: {e}")
                continue

            self._pages_by_id[page.page_id] = page
            self._pages_by_title[page.title] = page

        logger.debug(f"Indexed {len(self._pages_by_id)} pages from dump")

    def _parse_page(self, page_tag) -> DumpPage:
        title = page_tag.find('title', recursive=False).get_text(strip=True)
        ns_tag = page_tag.find('ns', recursive=False)
        namespace = int(ns_tag.get_text(strip=True)) if ns_tag else self._split_title(title)[0]
        page_id = int(page_tag.find('id', recursive=False).get_text(strip=True))

        page = DumpPage(
            page_id=page_id,
            namespace=namespace,
            title=title.replace('_', ' '),
            redirect=page_tag.find('redirect', recursive=False) is not None
        )

        revisions = []
        for revision in page_tag.find_all('revision', recursive=False):
            timestamp_tag = revision.find('timestamp')
            text_tag = revision.find('text')
            contributor = revision.find('contributor')
            user = None
            if contributor is not None:
                user_tag = contributor.find('username') or contributor.find('ip')
                user = user_tag.get_text(strip=True) if user_tag else None
            revisions.append((
                timestamp_tag.get_text(strip=True) if timestamp_tag else '',
                user,
                text_tag.get_text() if text_tag is not None else None
            ))

        if revisions:
            revisions.sort(key=lambda revision: revision[0])
            page.creator = revisions[0][1]
            page.latest_timestamp = revisions[-1][0] or None
            page.text = revisions[-1][2]
            page.revision_count = len(revisions)
            page.contributors = [user for _, user, _ in revisions if user]

        return page

    # Title handling

    def _namespace_names(self) -> Dict[str, int]:
        """Map lower-cased local and canonical namespace names to ids."""
        names = {}
        for ns_id, name in CANONICAL_NAMESPACES.items():
            names[name.lower()] = ns_id
        for ns_id, name in self.namespaces.items():
            if name:
                names[name.lower()] = ns_id
        return names

    def _split_title(self, name: str) -> Tuple[int, str]:
        """
        Normalize a page name and split off its namespace.

        Returns:
            Tuple of (namespace id, normalized full title)
        """
        name = re.sub(r'\s+', ' ', name.replace('_', ' ')).strip().lstrip(':').strip()
        namespace = NS_MAIN
        text = name

        if ':' in name:
            prefix, rest = name.split(':', 1)
            ns_id = self._namespace_names().get(prefix.strip().lower())
            if ns_id is not None:
                namespace = ns_id
                text = rest.strip()

        if text:
            text = text[0].upper() + text[1:]

        local = self.namespaces.get(namespace) or CANONICAL_NAMESPACES.get(namespace, '')
        full_text = f"{local}:{text}" if namespace != NS_MAIN and local else text
        return namespace, full_text

    def _make_ref(self, namespace: int, full_text: str, page_id: Optional[int] = None) -> PageRef:
        return PageRef.from_title(
            full_text,
            namespace=namespace,
            namespace_name=self.namespaces.get(namespace) or CANONICAL_NAMESPACES.get(namespace),
            page_id=page_id,
            canonical_name=CANONICAL_NAMESPACES.get(namespace)
        )

    def _ref_for(self, page: DumpPage) -> PageRef:
        return self._make_ref(page.namespace, page.title, page.page_id)

    # Resolution

    def resolve(self, name: str) -> Optional[PageRef]:
        if not name or not name.strip():
            return None
        _, full_text = self._split_title(name)
        page = self._pages_by_title.get(full_text)
        return self._ref_for(page) if page else None

    def resolve_id(self, page_id: int) -> Optional[PageRef]:
        page = self._pages_by_id.get(page_id)
        return self._ref_for(page) if page else None

    def _page_for(self, ref: PageRef) -> DumpPage:
        page = self._pages_by_title.get(ref.full_text)
        if page is None and ref.page_id is not None:
            page = self._pages_by_id.get(ref.page_id)
        if page is None:
            raise PageDataError(f"Page '{ref.full_text}' is not in the dump")
        return page

    # Page data

    def get_page_data(self, ref: PageRef) -> PageData:
        if ref.hash_key in self._page_cache:
            return self._page_cache[ref.hash_key]

        page = self._page_for(ref)
        if page.text is None:
            raise PageDataError(f"Page '{ref.full_text}' has no revision text in the dump")

        data = PageData(
            ref=ref,
            content=page.text,
            creator=page.creator,
            categories=self._parse_categories(page.text),
            latest_revision=self._parse_date(page.latest_timestamp),
            display_title=self._parse_display_title(page.text)
        )
        self._page_cache[ref.hash_key] = data
        return data

    def _parse_categories(self, text: str) -> List[PageRef]:
        """Extract category assignments (``[[Category:X]]``, not ``[[:Category:X]]``)."""
        categories: List[PageRef] = []
        seen = set()
        for match in LINK_PATTERN.finditer(text):
            if match.group(1):
                continue
            namespace, full_text = self._split_title(match.group(2))
            if namespace != NS_CATEGORY or full_text in seen:
                continue
            seen.add(full_text)
            page = self._pages_by_title.get(full_text)
            categories.append(self._make_ref(namespace, full_text, page.page_id if page else None))
        return categories

    def _parse_display_title(self, text: str) -> Optional[str]:
        """Read the display title from an inline property annotation or DISPLAYTITLE."""
        property_pattern = re.compile(
            r'\[\[\s*' + re.escape(self.display_title_property) + r'\s*::\s*([^\]\|]+)', re.IGNORECASE
        )
        match = property_pattern.search(text)
        if match:
            return match.group(1).strip()

        match = DISPLAYTITLE_PATTERN.search(text)
        return match.group(1) if match else None

    def get_latest_revision(self, ref: PageRef) -> Optional[datetime]:
        try:
            return self._parse_date(self._page_for(ref).latest_timestamp)
        except PageDataError:
            return None

    # Listings

    def get_max_page_id(self) -> int:
        return max(self._pages_by_id, default=0)

    def list_pages(self, namespaces: List[int], offset: int = 0, limit: int = 30) -> List[PageRef]:
        wanted = set(namespaces)
        pages = [self._pages_by_id[pid] for pid in sorted(self._pages_by_id)]
        pages = [page for page in pages if page.namespace in wanted]
        return [self._ref_for(page) for page in pages[offset:offset + limit]]

    def get_category_members(self, category: str, limit: int = 100) -> List[PageRef]:
        namespace, full_text = self._split_title(category)
        if namespace != NS_CATEGORY:
            namespace, full_text = self._split_title(f"{CANONICAL_NAMESPACES[NS_CATEGORY]}:{category}")

        members = []
        for page_id in sorted(self._pages_by_id):
            page = self._pages_by_id[page_id]
            if not page.text:
                continue
            if any(ref.full_text == full_text for ref in self._parse_categories(page.text)):
                members.append(self._ref_for(page))
                if len(members) >= limit:
                    break
        return members

    def get_linked_pages(self, ref: PageRef) -> List[PageRef]:
        text = self._page_for(ref).text or ''
        links: List[PageRef] = []
        seen = set()
        for match in LINK_PATTERN.finditer(text):
            namespace, full_text = self._split_title(match.group(2))
            # Without a leading colon these are category assignments or embedded files
            if not match.group(1) and namespace in (NS_CATEGORY, NS_FILE):
                continue
            page = self._pages_by_title.get(full_text)
            if page is None or full_text in seen or full_text == ref.full_text:
                continue
            seen.add(full_text)
            links.append(self._ref_for(page))
        return links

    def get_site_info(self) -> SiteInfo:
        base = self.site.get('base') or ''
        main_page = None
        page_prefix = None
        if base:
            parsed = urlparse(base)
            path, _, last_segment = parsed.path.rpartition('/')
            main_page = unquote(last_segment).replace('_', ' ') or None
            page_prefix = f"{parsed.scheme}://{parsed.netloc}{path}/"

        pages = list(self._pages_by_id.values())
        return SiteInfo(
            site_name=self.site.get('sitename') or '',
            language_code=self.site.get('lang') or '',
            page_prefix=page_prefix,
            main_page=main_page,
            main_page_url=base or None,
            generator=self.site.get('generator'),
            page_count=len(pages),
            content_page_count=sum(1 for page in pages if page.namespace == NS_MAIN and not page.redirect),
            media_count=sum(1 for page in pages if page.namespace == NS_FILE),
            edit_count=sum(page.revision_count for page in pages),
            user_count=len({user for page in pages for user in page.contributors}),
            admin_count=0
        )


__all__ = ['DumpPageResolver', 'DumpPage', 'CANONICAL_NAMESPACES']
