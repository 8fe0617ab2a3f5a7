"""Tests for template block location and field extraction."""

import unittest

from extractors import FieldExtractor, TemplateBlockLocator
from models import Leaf, Multiple, Single


class TestTemplateBlockLocator(unittest.TestCase):
    def setUp(self):
        self.locator = TemplateBlockLocator()

    def test_named_and_positional_fields(self):
        """Named parts keep their key, unnamed ones are numbered."""
        block = self.locator.find('Tuto Step', '{{Tuto Step|Title=Cut| first |Text=Saw it|second}}')

        self.assertIsNotNone(block)
        self.assertEqual(block.fields, {'Title': 'Cut', '1': 'first', 'Text': 'Saw it', '2': 'second'})

    def test_nested_delimiters_do_not_split(self):
        """Test separators inside nested markup do not split fields."""
        text = '{{Notes|Notes=See [[Page|the page]] and {{Info|a=b}} or {{{1|x}}}}} tail'
        block = self.locator.find('Notes', text)

        self.assertEqual(block.fields, {'Notes': 'See [[Page|the page]] and {{Info|a=b}} or {{{1|x}}}'})
        self.assertEqual(text[block.start:block.end], text[:-len(' tail')])

    def test_match_is_case_insensitive(self):
        """Test template names match case-insensitively."""
        block = self.locator.find('Tuto Step', 'intro {{tuto step|Title=A}}')
        self.assertEqual(block.start, 6)
        self.assertEqual(block.fields['Title'], 'A')

    def test_name_prefix_does_not_match(self):
        """Test a longer template name is not matched by its prefix."""
        self.assertIsNone(self.locator.find('Tuto', '{{Tuto Step|Title=A}}'))

    def test_block_without_fields(self):
        """Test a template without parameters yields no fields."""
        block = self.locator.find('Materials', '{{Materials}}')
        self.assertEqual(block.fields, {})
        self.assertGreater(block.length, 0)

    def test_unterminated_block(self):
        """Test an unterminated block is not returned."""
        self.assertIsNone(self.locator.find('Notes', '{{Notes|Notes=open {{Info|a}}'))

    def test_equals_inside_nested_template_is_positional(self):
        """Test an equals sign inside nested markup does not name a field."""
        block = self.locator.find('Intro', '{{Intro|{{Info|a=b}}}}')
        self.assertEqual(block.fields, {'1': '{{Info|a=b}}'})


class TestFieldExtractor(unittest.TestCase):
    def setUp(self):
        self.extractor = FieldExtractor(
            templates=['Tuto Details', 'Tuto Step', 'Notes'],
            multiple_templates=['Tuto Step']
        )

    def test_repeatable_and_single_blocks(self):
        """Three repeatable blocks interleaved with two single ones."""
        text = (
            '{{Tuto Details|Difficulty=Easy}}\n'
            '{{Tuto Step|Title=One}}\n'
            '{{Tuto Details|Difficulty=Hard}}\n'
            '{{Tuto Step|Title=Two}}\n'
            '{{Tuto Step|Title=Three}}\n'
        )
        result = self.extractor.extract(text)

        self.assertIsInstance(result['Tuto Step'], Multiple)
        self.assertEqual(
            result['Tuto Step'].to_python(),
            [{'Title': 'One'}, {'Title': 'Two'}, {'Title': 'Three'}]
        )
        self.assertIsInstance(result['Tuto Details'], Single)
        self.assertEqual(result['Tuto Details'].to_python(), {'Difficulty': 'Easy'})

    def test_absent_blocks(self):
        """Test absent templates yield an empty map or list."""
        result = self.extractor.extract('no templates here')

        self.assertEqual(result['Tuto Step'].to_python(), [])
        self.assertEqual(result['Tuto Details'].to_python(), {})
        self.assertEqual(list(result), ['Tuto Details', 'Tuto Step', 'Notes'])

    def test_unterminated_repeatable_block_stops(self):
        """Test extraction stops at an unterminated repeatable block."""
        text = '{{Tuto Step|Title=One}} {{Tuto Step|Title=Two'
        result = self.extractor.extract(text)
        self.assertEqual(result['Tuto Step'].to_python(), [{'Title': 'One'}])

    def test_leaves_hold_text(self):
        """Test field values are text leaves."""
        node = self.extractor.extract_template('Notes', '{{Notes|Notes=hi}}', multiple=False)
        self.assertIsInstance(node.fields['Notes'], Leaf)
        self.assertEqual(node.fields['Notes'].value, 'hi')

    def test_default_templates(self):
        """Test the default template configuration."""
        extractor = FieldExtractor()
        result = extractor.extract('{{PropertiesList|Name=Weight}}{{PropertiesList|Name=Size}}')

        self.assertEqual(len(result), 9)
        self.assertEqual(len(result['PropertiesList'].to_python()), 2)
        self.assertEqual(result['Introduction'].to_python(), {})


if __name__ == '__main__':
    unittest.main()
