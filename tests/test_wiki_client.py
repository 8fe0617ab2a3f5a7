"""Tests for the MediaWiki API client."""

import unittest
from unittest.mock import MagicMock

import requests

from wiki_client import WikiApiError, WikiClient

API_URL = 'https://wiki.example.org/api.php'


def make_response(body):
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = body
    return response


class TestWikiClient(unittest.TestCase):
    def setUp(self):
        self.client = WikiClient(API_URL, max_retries=0)
        self.client.session = MagicMock()

    def respond(self, *bodies):
        self.client.session.request.side_effect = [make_response(body) for body in bodies]

    def sent_params(self, index=0):
        return self.client.session.request.call_args_list[index].kwargs['params']

    def test_requires_api_url(self):
        """Test the client requires an API URL."""
        with self.assertRaises(ValueError):
            WikiClient('')

    def test_call_adds_format_and_encodes_lists(self):
        """Test calls add the format and pipe-join lists."""
        self.respond({'query': {}})

        self.client.call({'action': 'query', 'titles': ['A', 'B'], 'redirects': True,
                          'converttitles': False, 'rvslots': None})

        params = self.sent_params()
        self.assertEqual(params['format'], 'json')
        self.assertEqual(params['formatversion'], 2)
        self.assertEqual(params['titles'], 'A|B')
        self.assertEqual(params['redirects'], 1)
        self.assertIsNone(params['converttitles'])
        self.assertNotIn('rvslots', params)

    def test_error_body_raises(self):
        """Test an error body raises WikiApiError with its code."""
        self.respond({'error': {'code': 'badtoken', 'info': 'Invalid CSRF token.'}})

        with self.assertRaises(WikiApiError) as ctx:
            self.client.call({'action': 'query'})

        self.assertEqual(ctx.exception.code, 'badtoken')
        self.assertEqual(ctx.exception.info, 'Invalid CSRF token.')

    def test_non_json_body_raises(self):
        """Test a non-JSON body raises WikiApiError."""
        response = make_response(None)
        response.json.side_effect = ValueError('no json')
        response.text = '<html>maintenance</html>'
        self.client.session.request.return_value = response

        with self.assertRaisesRegex(WikiApiError, 'invalidjson'):
            self.client.call({'action': 'query'})

    def test_http_error_propagates(self):
        """Test HTTP errors propagate."""
        response = make_response({})
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)
        self.client.session.request.return_value = response

        with self.assertRaises(requests.exceptions.HTTPError):
            self.client.call({'action': 'query'})

    def test_query_follows_continuation(self):
        """Test queries follow continuation tokens."""
        self.respond(
            {'continue': {'apcontinue': 'B', 'continue': '-||'},
             'query': {'allpages': [{'pageid': 1, 'ns': 0, 'title': 'A'}]}},
            {'query': {'allpages': [{'pageid': 2, 'ns': 0, 'title': 'B'}]}}
        )

        pages = list(self.client.get_all_pages(0))

        self.assertEqual([page['title'] for page in pages], ['A', 'B'])
        self.assertEqual(self.sent_params(1)['apcontinue'], 'B')
        self.assertEqual(self.sent_params(1)['action'], 'query')

    def test_get_pages_merges_continued_props(self):
        """Test continued page props are merged."""
        self.respond(
            {'continue': {'clcontinue': '1|B', 'continue': '||'},
             'query': {'pages': [{'pageid': 1, 'title': 'A', 'categories': [{'title': 'Category:X'}]}]}},
            {'query': {'pages': [{'pageid': 1, 'title': 'A', 'categories': [{'title': 'Category:Y'}]}]}}
        )

        pages = self.client.get_pages(titles=['A'], prop='categories')

        self.assertEqual(len(pages), 1)
        self.assertEqual([c['title'] for c in pages[0]['categories']], ['Category:X', 'Category:Y'])

    def test_category_members_respects_limit(self):
        """Test category listing stops at the limit."""
        self.respond(
            {'continue': {'cmcontinue': 'page|2', 'continue': '-||'},
             'query': {'categorymembers': [{'pageid': 1, 'ns': 0, 'title': 'A'},
                                           {'pageid': 2, 'ns': 0, 'title': 'B'}]}}
        )

        members = self.client.get_category_members('Category:Tools', limit=1)

        self.assertEqual([m['title'] for m in members], ['A'])
        self.assertEqual(self.client.session.request.call_count, 1)

    def test_get_page_content_missing(self):
        """Test a missing page has no content."""
        self.respond({'query': {'pages': [{'ns': 0, 'title': 'Nope', 'missing': True}]}})

        self.assertIsNone(self.client.get_page_content('Nope'))

    def test_parse_posts_form_data(self):
        """Test parsing posts the text as form data."""
        self.respond({'parse': {'title': 'API', 'text': '<p><b>x</b></p>'}})

        html = self.client.parse("'''x'''", title='Main Page')

        self.assertEqual(html, '<p><b>x</b></p>')
        call = self.client.session.request.call_args
        self.assertEqual(call.args[0], 'POST')
        self.assertEqual(call.kwargs['data']['text'], "'''x'''")
        self.assertEqual(call.kwargs['data']['disableeditsection'], 1)

    def test_ask_returns_results(self):
        """Test semantic queries return their results."""
        self.respond({'query': {'results': {'A': {'printouts': {}}}}})
        self.assertEqual(self.client.ask('[[A]]'), {'A': {'printouts': {}}})

        self.respond({'query': {'results': []}})
        self.assertEqual(self.client.ask('[[B]]'), {})


class TestWikiClientLogin(unittest.TestCase):
    def setUp(self):
        self.client = WikiClient(API_URL, username='Bot@export', password='secret', max_retries=0)
        self.client.session = MagicMock()

    def test_login(self):
        """Test login runs once with the login token."""
        self.client.session.request.side_effect = [
            make_response({'query': {'tokens': {'logintoken': 'abc+\\'}}}),
            make_response({'login': {'result': 'Success', 'lgusername': 'Bot'}})
        ]

        self.client.login()
        self.client.login()

        self.assertTrue(self.client.logged_in)
        self.assertEqual(self.client.session.request.call_count, 2)
        data = self.client.session.request.call_args.kwargs['data']
        self.assertEqual(data['lgtoken'], 'abc+\\')
        self.assertEqual(data['lgname'], 'Bot@export')

    def test_failed_login(self):
        """Test a failed login raises WikiApiError."""
        self.client.session.request.side_effect = [
            make_response({'query': {'tokens': {'logintoken': 'abc+\\'}}}),
            make_response({'login': {'result': 'Failed', 'reason': 'Incorrect password'}})
        ]

        with self.assertRaisesRegex(WikiApiError, 'Incorrect password'):
            self.client.login()
        self.assertFalse(self.client.logged_in)

    def test_from_config(self):
        """Test building the client from configuration."""
        client = WikiClient.from_config({
            'wiki': {'api_url': API_URL, 'verify_ssl': False},
            'advanced': {'request_timeout': 5, 'rate_limit': 0.5}
        })

        self.assertEqual(client.timeout, 5)
        self.assertEqual(client.rate_limit, 0.5)
        self.assertFalse(client.session.verify)


if __name__ == '__main__':
    unittest.main()
