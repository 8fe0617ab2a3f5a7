"""Data models for the semantic JSON export pipeline."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger('semantic_json_export')

# Namespace constants of MediaWiki and Semantic MediaWiki
NS_MAIN = 0
NS_USER = 2
NS_PROJECT = 4
NS_FILE = 6
NS_TEMPLATE = 10
NS_HELP = 12
NS_CATEGORY = 14
SMW_NS_PROPERTY = 102
SMW_NS_TYPE = 104

STRUCTURAL_NAMESPACES = (NS_CATEGORY, SMW_NS_PROPERTY, SMW_NS_TYPE)

DEFAULT_SEMANTIC_NAMESPACES = [
    NS_MAIN, NS_USER, NS_PROJECT, NS_FILE, NS_HELP, NS_CATEGORY, SMW_NS_PROPERTY, SMW_NS_TYPE
]

DEFAULT_TEMPLATES = [
    'Tuto Details',
    'Introduction',
    'Materials',
    'Tuto Step',
    'Notes',
    'VideoIntro',
    'WikiPage',
    'PropertiesList',
    'PropertyOptions'
]

DEFAULT_MULTIPLE_TEMPLATES = [
    'Tuto Step',
    'PropertiesList',
    'PropertyOptions'
]

UNLIMITED_DEPTH = -1

DISPLAY_TITLE_KEY = 'Display title of'


class ExportMode(Enum):
    """Mutually exclusive export modes."""
    PAGES = "pages"
    CATEGORIES = "categories"
    PAGE_LIST = "page_list"
    WIKI_INFO = "wiki_info"
    ALL = "all"


def namespace_key(namespace: int, canonical_name: Optional[str]) -> str:
    """Build the tab key MediaWiki uses for a namespace (``nstab-main``, ``nstab-category``)."""
    if namespace == NS_MAIN or not canonical_name:
        return 'nstab-main'
    return 'nstab-' + canonical_name.lower().replace(' ', '_')


@dataclass(frozen=True)
class PageRef:
    """Resolved reference to a wiki page."""

    namespace: int
    dbkey: str
    text: str
    full_text: str
    namespace_key: str = 'nstab-main'
    page_id: Optional[int] = None

    @property
    def hash_key(self) -> str:
        """Key used for deduplication during an export run."""
        return self.full_text

    @classmethod
    def from_title(
        cls,
        full_text: str,
        namespace: int = NS_MAIN,
        namespace_name: Optional[str] = None,
        page_id: Optional[int] = None,
        canonical_name: Optional[str] = None
    ) -> 'PageRef':
        """
        Build a PageRef from a fully qualified title.

        Args:
            full_text: Title including namespace prefix (e.g. "Category:Tools")
            namespace: Namespace number
            namespace_name: Local namespace prefix to strip from the title
            page_id: Page id if known
            canonical_name: Canonical namespace name used for the namespace key
        """
        full_text = full_text.replace('_', ' ').strip()
        text = full_text
        prefix = f"{namespace_name}:" if namespace_name else None
        if namespace != NS_MAIN and prefix and full_text.lower().startswith(prefix.lower()):
            text = full_text[len(prefix):].strip()
        return cls(
            namespace=namespace,
            dbkey=text.replace(' ', '_'),
            text=text,
            full_text=full_text,
            namespace_key=namespace_key(namespace, canonical_name or namespace_name),
            page_id=page_id
        )


@dataclass
class ExportTask:
    """A queued page together with the recursion depth requested for it."""

    page: PageRef
    depth: int = 1

    @property
    def hash_key(self) -> str:
        return self.page.hash_key


@dataclass
class Leaf:
    """Scalar field value. Only ``str`` values are eligible for rendering."""

    value: Any

    def to_python(self) -> Any:
        return self.value


@dataclass
class Single:
    """Field map of one template occurrence (or any nested map)."""

    fields: Dict[str, 'FieldNode'] = field(default_factory=dict)

    def to_python(self) -> Dict[str, Any]:
        return {key: node.to_python() for key, node in self.fields.items()}


@dataclass
class Multiple:
    """Ordered list of nodes, one per occurrence of a repeatable template."""

    items: List['FieldNode'] = field(default_factory=list)

    def to_python(self) -> List[Any]:
        return [item.to_python() for item in self.items]


FieldNode = Union[Leaf, Single, Multiple]


def field_tree_from_python(value: Any) -> FieldNode:
    """Build a field tree from plain dicts, lists and scalars."""
    if isinstance(value, (Leaf, Single, Multiple)):
        return value
    if isinstance(value, dict):
        return Single({str(key): field_tree_from_python(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return Multiple([field_tree_from_python(item) for item in value])
    return Leaf(value)


def page_tree_from_python(mapping: Dict[str, Any]) -> Dict[str, FieldNode]:
    """Build the top-level block map of a page (template name to node) from plain values."""
    return {str(key): field_tree_from_python(value) for key, value in mapping.items()}


def field_tree_to_python(tree: Dict[str, FieldNode]) -> Dict[str, Any]:
    """Convert the top-level block map of a page into JSON-ready values."""
    return {key: node.to_python() for key, node in tree.items()}


@dataclass
class PageData:
    """Raw content and metadata of one page as provided by a resolver."""

    ref: PageRef
    content: str
    creator: Optional[str] = None
    categories: List[PageRef] = field(default_factory=list)
    latest_revision: Optional[datetime] = None
    display_title: Optional[str] = None

    def page_info(self) -> Dict[str, Any]:
        """Metadata block merged into the exported page record."""
        return {
            'creator': self.creator,
            'categories': [
                {'id': category.dbkey, 'name': category.text}
                for category in self.categories
            ],
            DISPLAY_TITLE_KEY: self.display_title
        }


@dataclass
class SiteInfo:
    """Site-wide descriptive and statistical metadata."""

    site_name: str
    language_code: str
    page_prefix: Optional[str] = None
    main_page: Optional[str] = None
    main_page_url: Optional[str] = None
    generator: Optional[str] = None
    page_count: int = 0
    content_page_count: int = 0
    media_count: int = 0
    edit_count: int = 0
    user_count: int = 0
    admin_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize site info to the exported resource shape."""
        return {
            'resource': 'wiki',
            'siteName': self.site_name,
            'pagePrefix': self.page_prefix,
            'langCode': self.language_code,
            'mainPage': self.main_page_url or self.main_page,
            'generator': self.generator,
            'pageCount': self.page_count,
            'contentPageCount': self.content_page_count,
            'mediaCount': self.media_count,
            'editCount': self.edit_count,
            'userCount': self.user_count,
            'adminCount': self.admin_count
        }


@dataclass
class ExportStats:
    """Counters collected during one export run."""

    queued: int = 0
    exported: int = 0
    skipped: int = 0
    failed: int = 0
    flushes: int = 0
    sleeps: int = 0
    dependencies_kept: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'queued': self.queued,
            'exported': self.exported,
            'skipped': self.skipped,
            'failed': self.failed,
            'flushes': self.flushes,
            'sleeps': self.sleeps,
            'dependencies_kept': self.dependencies_kept
        }


@dataclass
class ExportSettings:
    """Explicit export configuration handed to the controller."""

    templates: List[str] = field(default_factory=lambda: list(DEFAULT_TEMPLATES))
    multiple_templates: List[str] = field(default_factory=lambda: list(DEFAULT_MULTIPLE_TEMPLATES))
    fields_to_parse: List[str] = field(default_factory=list)
    namespace_restriction: Any = False
    semantic_namespaces: List[int] = field(default_factory=lambda: list(DEFAULT_SEMANTIC_NAMESPACES))
    display_title_property: str = 'Display title of'
    export_url: Optional[str] = None
    follow_links: bool = False
    page_list_limit: int = 30
    category_member_limit: int = 100
    pages_flush_delay: int = 10
    listing_flush_delay: int = 35
    delay: int = 0
    delay_each: int = 0
    max_cache_size: int = 5000
    cache_backjump: int = 500

    def __post_init__(self) -> None:
        if self.cache_backjump > self.max_cache_size:
            raise ValueError("cache_backjump must not exceed max_cache_size")

    def is_semantic_namespace(self, namespace: int) -> bool:
        """Check whether pages of a namespace carry semantic data worth exporting."""
        return namespace in self.semantic_namespaces

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ExportSettings':
        """
        Build settings from the ``export`` and ``wiki`` configuration sections.

        Args:
            config: Configuration dictionary as returned by ConfigLoader

        Returns:
            ExportSettings instance
        """
        export_config = config.get('export', {}) or {}
        wiki_config = config.get('wiki', {}) or {}

        fields_to_parse = export_config.get('fields_to_parse', [])
        if isinstance(fields_to_parse, str):
            fields_to_parse = parse_field_list(fields_to_parse)

        return cls(
            templates=list(export_config.get('templates', DEFAULT_TEMPLATES)),
            multiple_templates=list(export_config.get('multiple_templates', DEFAULT_MULTIPLE_TEMPLATES)),
            fields_to_parse=list(fields_to_parse or []),
            namespace_restriction=parse_namespace_restriction(export_config.get('namespace_restriction', False)),
            semantic_namespaces=[int(ns) for ns in export_config.get('semantic_namespaces', DEFAULT_SEMANTIC_NAMESPACES)],
            display_title_property=export_config.get('display_title_property', 'Display title of'),
            export_url=wiki_config.get('export_url'),
            follow_links=bool(export_config.get('follow_links', False)),
            page_list_limit=int(export_config.get('page_list_limit', 30)),
            category_member_limit=int(export_config.get('category_member_limit', 100)),
            delay=int(export_config.get('delay', 0)),
            delay_each=int(export_config.get('delay_each', 0))
        )


def parse_field_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated field allowlist, dropping blank names."""
    if not value:
        return []
    return [name.strip() for name in value.split(',') if name.strip()]


def parse_namespace_restriction(value: Any) -> Any:
    """
    Normalize a namespace restriction from config or CLI input.

    Accepts ``False``/``None`` (no restriction), an int, a numeric string,
    a comma-separated string, or a list of namespace numbers.

    Raises:
        ValueError: If the value cannot be interpreted
    """
    if value is None or value is False or value == '':
        return False
    if isinstance(value, bool):
        raise ValueError(f"Invalid namespace restriction: {value}")
    if isinstance(value, int):
        return value
    if isinstance(value, (list, tuple, set)):
        return [int(ns) for ns in value]
    if isinstance(value, str):
        if ',' in value:
            return [int(ns) for ns in value.split(',') if ns.strip()]
        return int(value.strip())
    raise ValueError(f"Invalid namespace restriction: {value!r}")


__all__ = [
    'ExportMode',
    'ExportSettings',
    'ExportStats',
    'ExportTask',
    'FieldNode',
    'Leaf',
    'Multiple',
    'PageData',
    'PageRef',
    'SiteInfo',
    'Single',
    'field_tree_from_python',
    'field_tree_to_python',
    'page_tree_from_python',
    'namespace_key',
    'parse_field_list',
    'parse_namespace_restriction',
    'NS_MAIN',
    'NS_CATEGORY',
    'SMW_NS_PROPERTY',
    'SMW_NS_TYPE',
    'STRUCTURAL_NAMESPACES',
    'UNLIMITED_DEPTH',
    'DISPLAY_TITLE_KEY',
]
