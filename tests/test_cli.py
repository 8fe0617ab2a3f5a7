"""End-to-end tests of the command line entry point on an XML dump."""

import json
import os
import tempfile
import unittest

from export import create_argument_parser, determine_mode, main, read_page_names
from models import ExportMode

DUMP = """<mediawiki xmlns="http://www.mediawiki.org/xml/export-0.10/" version="0.10" xml:lang="en">
  <siteinfo>
    <sitename>Maker Wiki</sitename>
    <base>https://wiki.example.org/wiki/Main_Page</base>
    <generator>MediaWiki 1.35.1</generator>
    <namespaces>
      <namespace key="0" case="first-letter" />
      <namespace key="14" case="first-letter">Category</namespace>
    </namespaces>
  </siteinfo>
  <page>
    <title>Main Page</title>
    <ns>0</ns>
    <id>1</id>
    <revision>
      <timestamp>2024-02-03T04:05:06Z</timestamp>
      <contributor><username>Alice</username></contributor>
      <text xml:space="preserve">{{Tuto Details|Difficulty=Easy|Description='''Sturdy''' shelf}}
{{Tuto Step|Step_Title=Cut}}{{Tuto Step|Step_Title=Glue}}
[[Category:Tools]]</text>
    </revision>
  </page>
  <page>
    <title>Category:Tools</title>
    <ns>14</ns>
    <id>2</id>
    <revision>
      <timestamp>2020-01-01T00:00:00Z</timestamp>
      <contributor><username>Bob</username></contributor>
      <text xml:space="preserve">Tools</text>
    </revision>
  </page>
</mediawiki>
"""


class TestDetermineMode(unittest.TestCase):
    def parse(self, *argv):
        return create_argument_parser().parse_args(list(argv))

    def test_first_mode_wins(self):
        """Test the first given export mode takes precedence."""
        self.assertEqual(determine_mode(self.parse('--page', 'A', '--category', 'B', '--all')), ExportMode.PAGES)
        self.assertEqual(determine_mode(self.parse('--category', 'B', '--offset', '0')), ExportMode.CATEGORIES)
        self.assertEqual(determine_mode(self.parse('--offset', '0', '--stats')), ExportMode.PAGE_LIST)
        self.assertEqual(determine_mode(self.parse('--stats', '--all')), ExportMode.WIKI_INFO)
        self.assertEqual(determine_mode(self.parse('--all')), ExportMode.ALL)
        self.assertIsNone(determine_mode(self.parse()))

    def test_recursive_defaults_on(self):
        """Test recursion is on unless disabled."""
        self.assertTrue(self.parse('--page', 'A').recursive)
        self.assertFalse(self.parse('--page', 'A', '--no-recursive').recursive)

    def test_read_page_names(self):
        """Test page names are read from arguments and file without blanks."""
        with tempfile.NamedTemporaryFile('w', suffix='.txt', delete=False, encoding='utf-8') as f:
            f.write("Main Page\n\n  Category:Tools  \n")
        try:
            args = self.parse('--page', 'A', '--pages-file', f.name)
            self.assertEqual(read_page_names(args), ['A', 'Main Page', 'Category:Tools'])
        finally:
            os.unlink(f.name)


class TestMain(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dump = self.path('dump.xml')
        with open(self.dump, 'w', encoding='utf-8') as f:
            f.write(DUMP)
        self.config = self.path('config.yaml')
        with open(self.config, 'w', encoding='utf-8') as f:
            f.write("wiki:\n  export_url: https://wiki.example.org/export.php\n")
        self.output = self.path('out.json')

    def tearDown(self):
        self.tmp.cleanup()

    def path(self, name):
        return os.path.join(self.tmp.name, name)

    def run_main(self, *argv):
        return main(['--config', self.config, '--dump', self.dump, '--output', self.output] + list(argv))

    def read_output(self):
        with open(self.output, 'r', encoding='utf-8') as f:
            return json.load(f)

    def test_export_pages(self):
        """Test exporting explicit pages from a dump."""
        self.assertEqual(self.run_main('--page', 'Main Page', '--page', 'Nowhere'), 0)

        results = self.read_output()['results']
        self.assertEqual(len(results), 1)
        page = results[0]
        self.assertEqual(page['namespace'], 'nstab-main')
        self.assertEqual(page['id'], 'Main_Page')
        self.assertEqual(page['creator'], 'Alice')
        self.assertEqual(page['categories'], [{'id': 'Tools', 'name': 'Tools'}])
        self.assertEqual(page['content']['Tuto Details']['Difficulty'], 'Easy')
        self.assertEqual([step['Step_Title'] for step in page['content']['Tuto Step']], ['Cut', 'Glue'])

    def test_markdown_rendering_of_selected_fields(self):
        """Test selected fields are rendered with the markdown engine."""
        code = self.run_main('--page', 'Main Page', '--renderer', 'markdown', '--fields-to-parse', 'Description')

        self.assertEqual(code, 0)
        details = self.read_output()['results'][0]['content']['Tuto Details']
        self.assertIn('<strong>Sturdy</strong>', details['Description'])
        self.assertEqual(details['Difficulty'], 'Easy')

    def test_date_filter(self):
        """Test pages not revised since the date are left out."""
        self.assertEqual(self.run_main('--page', 'Main Page', '--page', 'Category:Tools', '--date', '2023-06-01'), 0)

        self.assertEqual([page['title'] for page in self.read_output()['results']], ['Main Page'])

    def test_category_members(self):
        """Test exporting the members of a category."""
        self.assertEqual(self.run_main('--category', 'Tools'), 0)

        self.assertEqual([page['title'] for page in self.read_output()['results']], ['Main Page'])

    def test_page_list_with_continuation(self):
        """Test the page list ends with a continuation link."""
        self.assertEqual(self.run_main('--offset', '0'), 0)

        results = self.read_output()['results']
        self.assertEqual([r.get('title') for r in results[:2]], ['Main Page', 'Tools'])
        self.assertEqual(results[2], {
            'resource': 'continuation',
            'offset': 30,
            'url': 'https://wiki.example.org/export.php?offset=30'
        })

    def test_wiki_info(self):
        """Test exporting site information."""
        self.assertEqual(self.run_main('--stats'), 0)

        wiki, continuation = self.read_output()['results']
        self.assertEqual(wiki['resource'], 'wiki')
        self.assertEqual(wiki['siteName'], 'Maker Wiki')
        self.assertEqual(wiki['pageCount'], 2)
        self.assertEqual(continuation['offset'], 0)

    def test_full_export_with_restriction(self):
        """Test a full export honours the namespace restriction."""
        self.assertEqual(self.run_main('--all', '--ns-restriction', '-1'), 0)

        self.assertEqual([page['title'] for page in self.read_output()['results']], ['Main Page'])

    def test_usage_errors(self):
        """Test usage and configuration errors exit with code 2."""
        self.assertEqual(self.run_main(), 2)
        self.assertEqual(self.run_main('--page', 'Main Page', '--date', 'not a date'), 2)
        self.assertEqual(main(['--config', self.path('missing.yaml'), '--dump', self.dump, '--stats']), 2)
        self.assertEqual(main(['--config', self.config, '--dump', self.path('missing.xml'), '--stats']), 2)


if __name__ == '__main__':
    unittest.main()
