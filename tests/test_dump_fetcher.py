"""Tests for the XML dump resolver."""

import os
import tempfile
from datetime import datetime, timezone

import pytest

from fetchers import DumpPageResolver, PageDataError, ResolverFactory

DUMP = """<mediawiki xmlns="http://www.mediawiki.org/xml/export-0.10/" version="0.10" xml:lang="en">
  <siteinfo>
    <sitename>Maker Wiki</sitename>
    <dbname>makerwiki</dbname>
    <base>https://wiki.example.org/wiki/Main_Page</base>
    <generator>MediaWiki 1.35.1</generator>
    <case>first-letter</case>
    <namespaces>
      <namespace key="-1" case="first-letter">Special</namespace>
      <namespace key="0" case="first-letter" />
      <namespace key="2" case="first-letter">User</namespace>
      <namespace key="10" case="first-letter">Template</namespace>
      <namespace key="14" case="first-letter">Category</namespace>
      <namespace key="102" case="first-letter">Property</namespace>
    </namespaces>
  </siteinfo>
  <page>
    <title>Main Page</title>
    <ns>0</ns>
    <id>1</id>
    <revision>
      <id>10</id>
      <timestamp>2023-01-01T10:00:00Z</timestamp>
      <contributor><username>Alice</username><id>1</id></contributor>
      <text xml:space="preserve">Welcome</text>
    </revision>
    <revision>
      <id>11</id>
      <timestamp>2024-02-03T04:05:06Z</timestamp>
      <contributor><username>Bob</username><id>2</id></contributor>
      <text xml:space="preserve">{{DISPLAYTITLE:Home}}
{{Tuto Details|Difficulty=Easy}}
See [[Build a shelf|the shelf]], [[:Category:Tools]] and [[Nowhere]].
[[Category:Tools]] [[category:Guides|Main]] [[File:Logo.png]]</text>
    </revision>
  </page>
  <page>
    <title>Build a shelf</title>
    <ns>0</ns>
    <id>3</id>
    <revision>
      <id>12</id>
      <timestamp>2024-03-01T00:00:00Z</timestamp>
      <contributor><ip>127.0.0.1</ip></contributor>
      <text xml:space="preserve">[[Display title of::Shelf tutorial]]
[[Category:Tools]]</text>
    </revision>
  </page>
  <page>
    <title>Category:Tools</title>
    <ns>14</ns>
    <id>5</id>
    <revision>
      <id>13</id>
      <timestamp>2024-01-01T00:00:00Z</timestamp>
      <contributor><username>Alice</username><id>1</id></contributor>
      <text xml:space="preserve">Tools category</text>
    </revision>
  </page>
  <page>
    <title>Empty</title>
    <ns>0</ns>
    <id>7</id>
  </page>
</mediawiki>
"""


@pytest.fixture
def resolver():
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, 'dump.xml')
        with open(path, 'w', encoding='utf-8') as f:
            f.write(DUMP)
        yield DumpPageResolver({'source': {'mode': 'dump', 'dump_path': path}})


class TestDumpPageResolver:
    def test_resolve_normalizes_titles(self, resolver):
        """Test titles are normalized before lookup."""
        ref = resolver.resolve('build_a_shelf')

        assert ref.full_text == 'Build a shelf'
        assert ref.page_id == 3
        assert resolver.resolve('category:tools').full_text == 'Category:Tools'
        assert resolver.resolve('Nowhere') is None
        assert resolver.resolve('  ') is None

    def test_resolve_id(self, resolver):
        """Test resolving a page id gives the namespace tab key."""
        ref = resolver.resolve_id(5)

        assert ref.namespace == 14
        assert ref.text == 'Tools'
        assert ref.namespace_key == 'nstab-category'
        assert resolver.resolve_id(2) is None

    def test_page_data_uses_latest_revision(self, resolver):
        """Test page data reads the latest revision and the first author."""
        data = resolver.get_page_data(resolver.resolve('Main Page'))

        assert data.content.startswith('{{DISPLAYTITLE:Home}}')
        assert data.creator == 'Alice'
        assert data.latest_revision == datetime(2024, 2, 3, 4, 5, 6, tzinfo=timezone.utc)
        assert data.display_title == 'Home'
        assert [(c.text, c.page_id) for c in data.categories] == [('Tools', 5), ('Guides', None)]

    def test_display_title_property_wins(self, resolver):
        """Test the display title property is preferred."""
        data = resolver.get_page_data(resolver.resolve('Build a shelf'))

        assert data.display_title == 'Shelf tutorial'
        assert data.creator == '127.0.0.1'

    def test_page_without_revision(self, resolver):
        """Test a page without revision raises PageDataError."""
        with pytest.raises(PageDataError):
            resolver.get_page_data(resolver.resolve('Empty'))

    def test_linked_pages_exist_and_skip_categories(self, resolver):
        """Test links are limited to existing pages and skip category tags."""
        links = resolver.get_linked_pages(resolver.resolve('Main Page'))

        assert [ref.full_text for ref in links] == ['Build a shelf', 'Category:Tools']

    def test_listing_and_max_id(self, resolver):
        """Test page listing by namespace and the highest page id."""
        assert resolver.get_max_page_id() == 7
        assert [ref.page_id for ref in resolver.list_pages([0], 0, 30)] == [1, 3, 7]
        assert [ref.page_id for ref in resolver.list_pages([0, 14], 1, 2)] == [3, 5]

    def test_category_members(self, resolver):
        """Test category members are found from category tags."""
        members = resolver.get_category_members('Tools')

        assert [ref.full_text for ref in members] == ['Main Page', 'Build a shelf']
        assert len(resolver.get_category_members('Category:Tools', limit=1)) == 1

    def test_site_info(self, resolver):
        """Test site info and statistics computed from the dump."""
        info = resolver.get_site_info()

        assert info.site_name == 'Maker Wiki'
        assert info.language_code == 'en'
        assert info.main_page == 'Main Page'
        assert info.page_prefix == 'https://wiki.example.org/wiki/'
        assert info.page_count == 4
        assert info.content_page_count == 3
        assert info.edit_count == 4
        assert info.user_count == 3

    def test_cache_is_cleared(self, resolver):
        """Test page data is cached until the cache is cleared."""
        ref = resolver.resolve('Main Page')
        first = resolver.get_page_data(ref)

        assert resolver.get_page_data(ref) is first
        resolver.clear_cache()
        assert resolver.get_page_data(ref) is not first


class TestResolverFactory:
    def test_missing_dump(self):
        """Test a missing dump file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            ResolverFactory.create_resolver({'source': {'mode': 'dump', 'dump_path': '/nonexistent/dump.xml'}})

    def test_invalid_mode(self):
        """Test an unknown source mode raises ValueError."""
        with pytest.raises(ValueError):
            ResolverFactory.create_resolver({'source': {'mode': 'ftp'}})
