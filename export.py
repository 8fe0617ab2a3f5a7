#!/usr/bin/env python3
"""
Semantic JSON Export Tool - Main CLI Entry Point

This script exports the template fields of wiki pages as JSON documents,
read either live through the MediaWiki Action API or offline from an XML
dump. Exactly one export mode runs per invocation.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from config_loader import ConfigLoader, deep_merge
from fetchers import ApiPageResolver, ResolverFactory
from logger import log_config, log_section, setup_logging
from models import ExportMode, ExportSettings
from orchestrator import ExportController, FileSink, SleepPacer, StreamSink, parse_revision_date
from renderers import FieldRenderer, create_renderer

# Version
__version__ = "1.0.0"

DEFAULT_CONFIG_PATH = 'config.yaml'


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Export template fields of wiki pages as JSON",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export two pages
  python export.py --page "Main Page" --page "Category:Tools"

  # Export the members of a category, rendering some fields to HTML
  python export.py --category Tutorials --fields-to-parse Description,Text

  # Only pages revised since a date
  python export.py --pages-file pages.txt --date 2024-01-01

  # Paginated listing and site information
  python export.py --offset 0
  python export.py --stats

  # Full-site export from an XML dump into a file
  python export.py --dump wiki.xml --renderer markdown --all --output all.json

  # Verbose logging
  python export.py --page "Main Page" -vv
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help=f'Path to configuration YAML file (default: {DEFAULT_CONFIG_PATH}, optional)'
    )

    source = parser.add_argument_group('source')
    source.add_argument('--source', choices=['api', 'dump'], help='Where pages are read from')
    source.add_argument('--api-url', type=str, help='URL of the wiki api.php')
    source.add_argument('--dump', type=str, help='Path to a MediaWiki XML dump (implies --source dump)')
    source.add_argument('--renderer', choices=['api', 'markdown'], help='Engine used for --fields-to-parse')

    modes = parser.add_argument_group('export modes (first given wins)')
    modes.add_argument('--page', action='append', default=[], help='Page to export (repeatable)')
    modes.add_argument('--pages-file', type=str, help="File with one page name per line ('-' for stdin)")
    modes.add_argument('--category', action='append', default=[], help='Category whose pages to export (repeatable)')
    modes.add_argument('--offset', type=int, help='Export the page list starting at this offset')
    modes.add_argument('--stats', action='store_true', help='Export site information')
    modes.add_argument('--all', action='store_true', help='Export every page of the wiki')

    options = parser.add_argument_group('export options')
    options.add_argument(
        '--recursive',
        action=argparse.BooleanOptionalAction,
        default=True,
        help='Queue pages at unlimited depth (default) or at depth 1'
    )
    options.add_argument('--date', type=str, help='Only export pages revised since this date')
    options.add_argument('--fields-to-parse', type=str, help='Comma-separated field names to render to HTML')
    options.add_argument('--ns-restriction', type=str, help="Namespace restriction for --all: -1, a number or a comma list")
    options.add_argument('--delay', type=int, help='Microseconds to pause during --all')
    options.add_argument('--delay-each', type=int, help='Pages to export between two pauses')
    options.add_argument(
        '--follow-links',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Also export pages linked from exported pages'
    )
    options.add_argument('--output', type=str, help='Write to this file instead of stdout')

    parser.add_argument('--log-file', type=str, help='Also write logs to this file')
    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def determine_mode(args: argparse.Namespace) -> Optional[ExportMode]:
    """Pick the export mode; explicit pages win over categories, listing, stats and full export."""
    if args.page or args.pages_file:
        return ExportMode.PAGES
    if args.category:
        return ExportMode.CATEGORIES
    if args.offset is not None:
        return ExportMode.PAGE_LIST
    if args.stats:
        return ExportMode.WIKI_INFO
    if args.all:
        return ExportMode.ALL
    return None


def read_page_names(args: argparse.Namespace) -> List[str]:
    """Collect page names from --page and --pages-file, dropping blank lines."""
    names = list(args.page)
    if args.pages_file:
        if args.pages_file == '-':
            lines = sys.stdin.read().splitlines()
        else:
            with open(args.pages_file, 'r', encoding='utf-8') as f:
                lines = f.read().splitlines()
        names.extend(lines)
    return [name.strip() for name in names if name.strip()]


def load_configuration(args: argparse.Namespace) -> dict:
    """Load the config file (optional when left at its default path) over the built-in defaults."""
    config = ConfigLoader.defaults()
    if os.path.exists(args.config) or args.config != DEFAULT_CONFIG_PATH:
        config = deep_merge(config, ConfigLoader.load(args.config))
    return ConfigLoader.merge_with_args(config, args)


def build_controller(config: dict, args: argparse.Namespace, mode: ExportMode,
                     logger: logging.Logger) -> ExportController:
    """Wire resolver, renderer, pacer and sink into a controller."""
    settings = ExportSettings.from_config(config)
    resolver = ResolverFactory.create_resolver(config, logger)

    field_renderer = None
    if settings.fields_to_parse:
        client = resolver.client if isinstance(resolver, ApiPageResolver) else None
        page_prefix = ''
        if config.get('rendering', {}).get('engine') == 'markdown':
            page_prefix = resolver.get_site_info().page_prefix or ''
        field_renderer = FieldRenderer(create_renderer(config, client, page_prefix), settings.fields_to_parse)
        logger.info(f"Rendering fields: {', '.join(settings.fields_to_parse)}")

    if args.output and mode != ExportMode.ALL:
        sink = FileSink(args.output)
    else:
        sink = StreamSink()

    return ExportController(
        resolver,
        settings,
        field_renderer=field_renderer,
        pacer=SleepPacer(),
        sink=sink,
        show_progress=mode == ExportMode.ALL and args.verbose > 0
    )


def run_export(config: dict, args: argparse.Namespace, mode: ExportMode, logger: logging.Logger) -> int:
    """Execute the selected export mode."""
    logger.info(f"Starting export, mode: {mode.value}")

    try:
        controller = build_controller(config, args, mode, logger)
        settings = controller.settings
        recursion = 1 if args.recursive else 0

        if mode == ExportMode.PAGES:
            ok = controller.print_pages(read_page_names(args), recursion, args.date)
        elif mode == ExportMode.CATEGORIES:
            ok = controller.print_category_pages(args.category, recursion, args.date)
        elif mode == ExportMode.PAGE_LIST:
            ok = controller.print_page_list(args.offset, settings.page_list_limit)
        elif mode == ExportMode.WIKI_INFO:
            ok = controller.print_wiki_info()
        elif args.output:
            ok = controller.print_all_to_file(
                args.output, settings.namespace_restriction, settings.delay, settings.delay_each
            )
        else:
            ok = controller.print_all_to_output(
                settings.namespace_restriction, settings.delay, settings.delay_each
            )

        if not ok:
            logger.error("Export aborted: output could not be opened")
            return 1

        stats = controller.stats
        if stats.failed > 0:
            logger.warning(f"Export completed with {stats.failed} failed pages")
        else:
            logger.info("Export completed successfully")
        return 0

    except KeyboardInterrupt:
        logger.error("Export interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Export failed: {str(e)}", exc_info=True)
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        # Minimal logging until the config is loaded
        logger = setup_logging(verbosity=args.verbose)

        log_section("Semantic JSON Export")
        logger.info(f"Version: {__version__}")

        mode = determine_mode(args)
        if mode is None:
            parser.print_usage(sys.stderr)
            print("ERROR: No export mode given (use --page, --pages-file, --category, --offset, --stats or --all)",
                  file=sys.stderr)
            return 2

        config = load_configuration(args)
        ConfigLoader.validate(config)
        parse_revision_date(args.date)

        # Reconfigure logging with config file settings
        logging_config = config.get('logging', {})
        logger = setup_logging(
            verbosity=args.verbose,
            log_file=logging_config.get('file'),
            level=logging_config.get('level')
        )

        log_config(config)

        return run_export(config, args, mode, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nExport interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
