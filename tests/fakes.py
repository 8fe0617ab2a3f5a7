"""In-memory collaborators shared by the export tests."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from fetchers import PageDataError, PageResolver
from models import NS_CATEGORY, PageData, PageRef, SiteInfo
from renderers import Renderer

NAMESPACE_NAMES = {0: None, 2: 'User', 4: 'Project', 10: 'Template', 14: 'Category', 102: 'Property', 104: 'Type'}


def make_ref(full_text: str, namespace: int = 0, page_id: Optional[int] = None) -> PageRef:
    return PageRef.from_title(
        full_text,
        namespace=namespace,
        namespace_name=NAMESPACE_NAMES.get(namespace),
        page_id=page_id
    )


class FakeResolver(PageResolver):
    """Resolver over a dict of pages; records calls for assertions."""

    def __init__(self):
        super().__init__({})
        self.pages: Dict[str, PageData] = {}
        self.by_id: Dict[int, PageRef] = {}
        self.links: Dict[str, List[PageRef]] = {}
        self.categories: Dict[str, List[PageRef]] = {}
        self.broken: set = set()
        self.fetched: List[str] = []
        self.cache_clears = 0

    def add_page(self, full_text: str, content: str = '', namespace: int = 0, page_id: Optional[int] = None,
                 revised: Optional[datetime] = None, creator: str = 'Alice', categories=None) -> PageRef:
        if page_id is None:
            page_id = len(self.by_id) + 1
        ref = make_ref(full_text, namespace, page_id)
        self.pages[ref.full_text] = PageData(
            ref=ref,
            content=content,
            creator=creator,
            categories=[make_ref(name, NS_CATEGORY) for name in (categories or [])],
            latest_revision=revised or datetime(2024, 1, 1, tzinfo=timezone.utc),
            display_title=ref.text
        )
        self.by_id[page_id] = ref
        return ref

    def resolve(self, name):
        data = self.pages.get(name.replace('_', ' '))
        return data.ref if data else None

    def resolve_id(self, page_id):
        return self.by_id.get(page_id)

    def get_page_data(self, ref):
        self.fetched.append(ref.full_text)
        if ref.full_text in self.broken:
            raise PageDataError(f"broken page {ref.full_text}")
        return self.pages[ref.full_text]

    def get_latest_revision(self, ref):
        data = self.pages.get(ref.full_text)
        return data.latest_revision if data else None

    def get_max_page_id(self):
        return max(self.by_id, default=0)

    def list_pages(self, namespaces, offset=0, limit=30):
        refs = [self.by_id[pid] for pid in sorted(self.by_id) if self.by_id[pid].namespace in namespaces]
        return refs[offset:offset + limit]

    def get_category_members(self, category, limit=100):
        return self.categories.get(category, [])[:limit]

    def get_linked_pages(self, ref):
        return list(self.links.get(ref.full_text, []))

    def get_site_info(self):
        return SiteInfo(
            site_name='Test Wiki',
            language_code='en',
            page_prefix='https://wiki.example.org/wiki/',
            main_page='Main Page',
            main_page_url='https://wiki.example.org/wiki/Main_Page',
            page_count=len(self.pages),
            content_page_count=len(self.pages),
            edit_count=10,
            user_count=2,
            admin_count=1
        )

    def clear_cache(self):
        self.cache_clears += 1
        super().clear_cache()


class UpperRenderer(Renderer):
    """Renders by upper-casing and wrapping in a paragraph."""

    def __init__(self):
        super().__init__()
        self.calls: List[str] = []

    def _render(self, text, title):
        self.calls.append(text)
        return f"<p>{text.upper()}</p>"


class FailingRenderer(Renderer):
    def _render(self, text, title):
        raise RuntimeError("parser unavailable")


class RecordingPacer:
    def __init__(self):
        self.pauses: List[int] = []

    def pause(self, microseconds):
        self.pauses.append(microseconds)
