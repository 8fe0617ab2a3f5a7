"""
Export controller driving page traversal, extraction and streaming output.

The controller owns the export queue and the record of pages already
serialized (with the recursion depth they were serialized at). A page is
serialized again only when requested at a greater depth than recorded,
which keeps recursive exports finite on cyclic link graphs.

Depth semantics: ``-1`` is unlimited, ``0`` exports the page without
queueing anything it refers to, ``N > 0`` follows references ``N`` more
levels.
"""

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from itertools import islice
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from dateutil import parser as date_parser
from tqdm import tqdm

from extractors import FieldExtractor
from fetchers import FetcherError, PageResolver
from logger import ProgressTracker
from models import (
    STRUCTURAL_NAMESPACES,
    UNLIMITED_DEPTH,
    ExportSettings,
    ExportStats,
    ExportTask,
    FieldNode,
    PageRef
)
from renderers import FieldRenderer
from serializers import JsonSerializer
from .pacing import NullPacer, Pacer
from .sinks import FileSink, OutputSink, StreamSink

logger = logging.getLogger('semantic_json_export.orchestrator.controller')

BeforeSerializeHook = Callable[[PageRef, Dict[str, FieldNode]], None]


class ExportError(Exception):
    """Raised for export runs that cannot be carried out."""
    pass


def parse_revision_date(value: Union[None, str, datetime]) -> Optional[datetime]:
    """
    Parse a revision-date lower bound into an aware UTC datetime.

    Naive values are taken as UTC. Empty values mean "no filter".

    Raises:
        ValueError: If the value is not a recognizable date
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = date_parser.parse(str(value))
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Invalid revision date: {value}") from e

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class ExportController:
    """Orchestrates page export: resolve → extract → hooks → render → serialize → flush."""

    def __init__(
        self,
        resolver: PageResolver,
        settings: Optional[ExportSettings] = None,
        serializer: Optional[JsonSerializer] = None,
        extractor: Optional[FieldExtractor] = None,
        field_renderer: Optional[FieldRenderer] = None,
        pacer: Optional[Pacer] = None,
        sink: Optional[OutputSink] = None,
        show_progress: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize export controller.

        Args:
            resolver: Host adapter providing pages and metadata
            settings: Export settings (defaults when omitted)
            serializer: Serializer accumulating output
            extractor: Field extractor (built from settings when omitted)
            field_renderer: Post-processor for fields to render (none when omitted)
            pacer: Pacer used during full-site export
            sink: Output of the stream modes (stdout when omitted)
            show_progress: Show a progress bar during full-site export
            logger: Optional logger instance
        """
        self.resolver = resolver
        self.settings = settings or ExportSettings()
        self.serializer = serializer or JsonSerializer()
        self.extractor = extractor or FieldExtractor(self.settings.templates, self.settings.multiple_templates)
        self.field_renderer = field_renderer
        self.pacer = pacer or NullPacer()
        self.sink = sink or StreamSink()
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger('semantic_json_export.orchestrator.controller')

        self.before_serialize_hooks: List[BeforeSerializeHook] = []

        self.queue: 'OrderedDict[str, ExportTask]' = OrderedDict()
        self.done: Dict[str, int] = {}
        self.delay_flush = 0
        self.stats = ExportStats()
        self.kept_dependencies: Set[str] = set()

        self._sink: Optional[OutputSink] = None
        self._running = False

    def add_before_serialize_hook(self, hook: BeforeSerializeHook) -> None:
        """Register a callable ``(page_ref, data)`` that may modify extracted data."""
        self.before_serialize_hooks.append(hook)

    # Run lifecycle

    def _prepare_serialization(self, sink: OutputSink) -> bool:
        """
        Reset run state and open the sink.

        Returns:
            False if the sink cannot be opened
        """
        if self._running:
            raise ExportError("An export is already running on this controller")

        self.serializer.clear()
        self.queue = OrderedDict()
        self.done = {}
        self.stats = ExportStats()
        self.kept_dependencies = set()

        try:
            sink.open()
        except OSError as e:
            self.logger.error(f"Cannot open output for writing: {str(e)}")
            return False

        self._sink = sink
        self._running = True
        return True

    def _end_serialization(self) -> None:
        """Close the sink; runs on every exit path of a mode."""
        try:
            if self._sink is not None:
                self._sink.close()
        finally:
            self._sink = None
            self._running = False
        self.logger.info(f"Export finished: {self.stats.to_dict()}")

    def flush(self, force: bool = False) -> None:
        """Write buffered output to the sink, unless still within the deferred-flush window."""
        if not force and self.delay_flush > 0:
            self.delay_flush -= 1
            return

        chunk = self.serializer.flush_content()
        if chunk:
            self._sink.write(chunk)
            self.stats.flushes += 1

    # Dedup and queueing

    def is_hash_done(self, page_hash: str, depth: int) -> bool:
        """Check if a page has already been serialized at sufficient depth."""
        recorded = self.done.get(page_hash)
        if recorded is None:
            return False
        return recorded == UNLIMITED_DEPTH or (depth != UNLIMITED_DEPTH and recorded >= depth)

    def mark_hash_as_done(self, page_hash: str, depth: int) -> None:
        """Record a page as serialized at ``depth`` and remove it from the queue.

        When the record is full, the oldest ``cache_backjump`` entries are
        evicted first.
        """
        if len(self.done) >= self.settings.max_cache_size:
            for key in list(islice(self.done, self.settings.cache_backjump)):
                del self.done[key]
            self.logger.debug(f"Evicted {self.settings.cache_backjump} entries from done record")

        if not self.is_hash_done(page_hash, depth):
            self.done[page_hash] = depth
        self.queue.pop(page_hash, None)

    def is_page_done(self, page: PageRef, depth: int) -> bool:
        return self.is_hash_done(page.hash_key, depth)

    def mark_page_as_done(self, page: PageRef, depth: int) -> None:
        self.mark_hash_as_done(page.hash_key, depth)

    def queue_page(self, page: PageRef, depth: int) -> None:
        """Add a page to the queue unless it is done at sufficient depth or already queued."""
        if not self.is_page_done(page, depth) and page.hash_key not in self.queue:
            self.queue[page.hash_key] = ExportTask(page, depth)
            self.stats.queued += 1

    def _pop_task(self) -> ExportTask:
        _, task = self.queue.popitem(last=False)
        return task

    # Page serialization

    def serialize_page(self, task: ExportTask) -> bool:
        """
        Serialize one queued page.

        Returns:
            True if a record was written, False if the page was already done

        Raises:
            FetcherError: If the page data cannot be read
        """
        page, depth = task.page, task.depth
        if self.is_page_done(page, depth):
            return False

        self.mark_page_as_done(page, depth)

        page_data = self.resolver.get_page_data(page)
        data = self.extractor.extract(page_data.content)

        for hook in self.before_serialize_hooks:
            hook(page, data)

        if self.field_renderer is not None:
            self.field_renderer.render_fields(data, page.full_text)

        self.serializer.add_page(page, page_data.page_info(), data)
        self.stats.exported += 1

        if self.settings.follow_links and depth != 0:
            next_depth = UNLIMITED_DEPTH if depth == UNLIMITED_DEPTH else depth - 1
            for linked in self.resolver.get_linked_pages(page):
                self.queue_page(linked, next_depth)

        return True

    def _process_task(self, task: ExportTask, tracker: Optional[ProgressTracker] = None) -> bool:
        """Serialize a task, logging and skipping per-page failures."""
        success = False
        try:
            written = self.serialize_page(task)
            success = True
        except FetcherError as e:
            self.logger.warning(f"Skipping page '{task.page.full_text}': {str(e)}")
            written = False
            self.stats.failed += 1
        except Exception as e:
            self.logger.error(f"Failed to export page '{task.page.full_text}': {str(e)}")
            written = False
            self.stats.failed += 1
        finally:
            self.resolver.clear_cache()

        if success and not written:
            self.stats.skipped += 1
        if tracker is not None:
            tracker.increment(success)
        return written

    def _resolve(self, page: Union[str, PageRef]) -> Optional[PageRef]:
        if isinstance(page, PageRef):
            return page
        if not isinstance(page, str) or not page.strip():
            return None
        try:
            return self.resolver.resolve(page.strip())
        except Exception as e:
            self.logger.warning(f"Cannot resolve page '{page}': {str(e)}")
            return None

    def _is_revised_since(self, page: PageRef, since: datetime) -> bool:
        latest = self.resolver.get_latest_revision(page)
        if latest is None:
            return False
        if latest.tzinfo is None:
            latest = latest.replace(tzinfo=timezone.utc)
        return latest >= since

    # Export modes

    def print_pages(self, pages: Iterable[Union[str, PageRef]], recursion: int = 1,
                    revision_date: Union[None, str, datetime] = None) -> bool:
        """
        Export the given pages.

        Args:
            pages: Page names (with namespace prefix) or PageRefs
            recursion: 1 queues pages at unlimited depth, anything else at depth 1
            revision_date: Only export pages revised at or after this date

        Returns:
            False if the output could not be opened
        """
        since = parse_revision_date(revision_date)

        if not self._prepare_serialization(self.sink):
            return False

        try:
            self.delay_flush = self.settings.pages_flush_delay
            depth = UNLIMITED_DEPTH if recursion == 1 else 1

            for page in pages:
                ref = self._resolve(page)
                if ref is None:
                    self.logger.debug(f"Skipping unresolvable page: {page!r}")
                    self.stats.skipped += 1
                    continue
                if since is not None:
                    try:
                        revised = self._is_revised_since(ref, since)
                    except Exception as e:
                        self.logger.warning(f"Cannot read latest revision of '{ref.full_text}': {str(e)}")
                        self.stats.failed += 1
                        continue
                    if not revised:
                        self.logger.debug(f"Skipping '{ref.full_text}': not revised since {since.isoformat()}")
                        self.stats.skipped += 1
                        continue
                self.queue_page(ref, depth)

            self.serializer.start()
            with ProgressTracker(len(self.queue), "pages") as tracker:
                while self.queue:
                    self._process_task(self._pop_task(), tracker)
                    self.flush()
            self.serializer.finish()
            self.flush(force=True)
        finally:
            self._end_serialization()

        return True

    def print_category_pages(self, categories: Iterable[str], recursion: int = 1,
                             revision_date: Union[None, str, datetime] = None) -> bool:
        """Export the members of the given categories (bounded per category)."""
        pages: List[PageRef] = []
        for category in categories:
            if not category or not category.strip():
                continue
            try:
                members = self.resolver.get_category_members(category, self.settings.category_member_limit)
            except Exception as e:
                self.logger.warning(f"Cannot list category '{category}': {str(e)}")
                continue
            self.logger.info(f"Category '{category}': {len(members)} pages")
            pages.extend(members)

        return self.print_pages(pages, recursion, revision_date)

    def print_all_to_file(self, outfile: str, ns_restriction: Any = False,
                          delay: int = 0, delay_each: int = 0) -> bool:
        """
        Export every semantically enabled page of the wiki to a file.

        Returns:
            False if the file cannot be opened (nothing is exported)
        """
        return self._print_all(FileSink(outfile), ns_restriction, delay, delay_each)

    def print_all_to_output(self, ns_restriction: Any = False, delay: int = 0, delay_each: int = 0) -> bool:
        """Export every semantically enabled page of the wiki to the controller's sink."""
        return self._print_all(self.sink, ns_restriction, delay, delay_each)

    def _print_all(self, sink: OutputSink, ns_restriction: Any, delay: int, delay_each: int) -> bool:
        """Scan page ids in order, draining each page's queue before the next id.

        The pacer pauses ``delay`` microseconds after every ``delay_each``
        processed tasks, including tasks that failed or were already done.
        """
        if not self._prepare_serialization(sink):
            return False

        try:
            self.delay_flush = self.settings.pages_flush_delay
            self.serializer.start()

            end = self.resolver.get_max_page_id()
            self.logger.info(f"Scanning page ids 1..{end}")
            since_pause = 0

            with ProgressTracker(None, "pages") as tracker:
                for page_id in tqdm(range(1, end + 1), desc="Exporting", unit="id",
                                    disable=not self.show_progress):
                    try:
                        ref = self.resolver.resolve_id(page_id)
                    except Exception as e:
                        self.logger.warning(f"Cannot resolve page id {page_id}: {str(e)}")
                        continue

                    if ref is None or not self.settings.is_semantic_namespace(ref.namespace):
                        continue
                    if not self.fits_ns_restriction(ns_restriction, ref.namespace):
                        continue

                    self.queue_page(ref, 1)

                    while self.queue:
                        # every drained task counts towards the pause, written or not
                        self._process_task(self._pop_task(), tracker)
                        since_pause += 1
                        self._prune_queue(ns_restriction)

                        if delay_each > 0 and since_pause >= delay_each:
                            self.pacer.pause(delay)
                            self.stats.sleeps += 1
                            since_pause = 0

                    self.flush()

            self.serializer.finish()
            self.flush(force=True)
        finally:
            self._end_serialization()

        return True

    def _prune_queue(self, ns_restriction: Any) -> None:
        """Drop queued pages the id scan will reach itself; keep the others as dependencies."""
        for key, task in list(self.queue.items()):
            namespace = task.page.namespace
            if self.settings.is_semantic_namespace(namespace) and self.fits_ns_restriction(ns_restriction, namespace):
                del self.queue[key]
            elif key not in self.kept_dependencies:
                self.kept_dependencies.add(key)
                self.stats.dependencies_kept += 1

    def print_page_list(self, offset: int = 0, limit: int = 30) -> bool:
        """
        Export a page of the wiki's pages ordered by page id, without dependencies.

        Offset and limit count existing pages. A continuation resource pointing
        at the next offset follows a non-empty result.
        """
        if not self._prepare_serialization(self.sink):
            return False

        try:
            self.delay_flush = self.settings.listing_flush_delay
            self.serializer.start()

            pages = self.resolver.list_pages(self.settings.semantic_namespaces, offset, limit)
            for page in pages:
                self._process_task(ExportTask(page, 0))
                self.flush()

            if pages:
                self.serializer.add_resource(self._continuation(offset + limit))

            self.serializer.finish()
            self.flush(force=True)
        finally:
            self._end_serialization()

        return True

    def print_wiki_info(self) -> bool:
        """Export site information followed by a link to the first page list."""
        if not self._prepare_serialization(self.sink):
            return False

        try:
            self.delay_flush = self.settings.listing_flush_delay
            self.serializer.start()
            self.serializer.add_resource(self.resolver.get_site_info().to_dict())
            self.serializer.add_resource(self._continuation(0))
            self.serializer.finish()
            self.flush(force=True)
        finally:
            self._end_serialization()

        return True

    def _continuation(self, offset: int) -> Dict[str, Any]:
        """Build the resource linking to the page list at ``offset``."""
        export_url = self.settings.export_url
        url = None
        if export_url:
            separator = '&' if '?' in export_url else '?'
            url = f"{export_url}{separator}offset={offset}"
        return {'resource': 'continuation', 'offset': offset, 'url': url}

    @staticmethod
    def fits_ns_restriction(restriction: Any, namespace: int) -> bool:
        """
        Check whether a namespace fits a restriction.

        ``False``/``None`` means no restriction, a collection requires
        membership, a non-negative number requires equality, and a negative
        number excludes the Category, Property and Type namespaces.
        """
        if restriction is None or restriction is False:
            return True
        if isinstance(restriction, (list, tuple, set, frozenset)):
            return namespace in restriction
        if restriction >= 0:
            return namespace == restriction
        return namespace not in STRUCTURAL_NAMESPACES


__all__ = ['ExportController', 'ExportError', 'parse_revision_date']
