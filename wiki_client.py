"""MediaWiki Action API client with retry logic, rate limiting and continuation handling."""

import logging
import time
from typing import Any, Dict, Iterator, List, Optional

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger('semantic_json_export.client')

DEFAULT_USER_AGENT = 'semantic-json-export/1.0 (+https://www.mediawiki.org/wiki/API:Etiquette)'

# Batch size accepted by the API for titles/pageids without apihighlimits
ID_BATCH_SIZE = 50


class WikiApiError(Exception):
    """Raised when the API answers with an ``error`` object or an unusable response."""

    def __init__(self, code: str, info: str = ''):
        super().__init__(f"{code}: {info}" if info else code)
        self.code = code
        self.info = info


class WikiClient:
    """MediaWiki Action API client with optional bot login, retries and rate limiting."""

    def __init__(
        self,
        api_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_ssl: bool = True,
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_factor: float = 2.0,
        rate_limit: float = 0.0,
        user_agent: str = DEFAULT_USER_AGENT
    ):
        """
        Initialize the client and its HTTP session.

        Args:
            api_url: Full URL of api.php (e.g. "https://wiki.example.org/api.php")
            username: Bot username for login (optional)
            password: Bot password for login (optional)
            verify_ssl: Whether to verify SSL certificates
            timeout: HTTP request timeout in seconds
            max_retries: Maximum retry attempts for transient errors
            retry_backoff_factor: Exponential backoff factor
            rate_limit: Minimum seconds between requests (0.0 = no rate limiting)
            user_agent: User-Agent header sent with every request
        """
        if not api_url:
            raise ValueError("api_url is required")

        self.api_url = api_url
        self.username = username
        self.password = password
        self.timeout = timeout
        self.max_retries = max_retries
        self.rate_limit = rate_limit
        self.last_request_time = 0.0
        self.logged_in = False

        self.session = requests.Session()
        self.session.headers['User-Agent'] = user_agent

        self.session.verify = verify_ssl
        if not verify_ssl:
            logger.warning("SSL verification disabled - this is insecure!")
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"]
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        logger.debug(f"Client configured for {api_url} with timeout={timeout}s, max_retries={max_retries}, "
                     f"backoff_factor={retry_backoff_factor}, rate_limit={rate_limit}s")

    def _enforce_rate_limit(self) -> None:
        """Enforce rate limiting if configured."""
        if self.rate_limit <= 0:
            return

        time_since_last = time.time() - self.last_request_time

        if time_since_last < self.rate_limit:
            sleep_time = self.rate_limit - time_since_last
            logger.debug(f"Rate limiting: sleeping for {sleep_time:.2f}s")
            time.sleep(sleep_time)

    def _make_request(self, method: str, params: Dict[str, Any], data: Optional[Dict[str, Any]] = None) -> requests.Response:
        """
        Make an HTTP request to api.php with rate limiting and error logging.

        Raises:
            requests.exceptions.RequestException: For transport and HTTP errors
        """
        self._enforce_rate_limit()

        start_time = time.time()
        logger.debug(f"API Request: {method} {params.get('action')} {params.get('list') or params.get('prop') or ''}")

        try:
            response = self.session.request(
                method, self.api_url, params=params, data=data, timeout=self.timeout
            )
            elapsed = time.time() - start_time
            logger.debug(f"API Response: {response.status_code} ({elapsed:.3f}s)")
            response.raise_for_status()
            return response

        except requests.exceptions.Timeout:
            logger.error(f"Request timeout after {self.timeout}s: {method} {self.api_url}")
            raise

        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else "unknown"
            logger.error(f"HTTP Error {status_code}: {method} {self.api_url}")
            if e.response is not None:
                logger.debug(f"Error response: {e.response.text[:500]}")
            raise

        except requests.exceptions.RequestException as e:
            logger.error(f"Request error: {method} {self.api_url} - {str(e)}")
            raise

        finally:
            self.last_request_time = time.time()

    def call(self, params: Dict[str, Any], method: str = 'GET') -> Dict[str, Any]:
        """
        Call the API and return the decoded JSON body.

        Args:
            params: API parameters (``format`` and ``formatversion`` are added)
            method: ``GET`` or ``POST`` (parameters are sent as form data for POST)

        Returns:
            Decoded response

        Raises:
            WikiApiError: If the API reports an error or returns non-JSON
        """
        payload = {'format': 'json', 'formatversion': 2}
        payload.update({key: self._encode_param(value) for key, value in params.items() if value is not None})

        if method == 'POST':
            response = self._make_request('POST', params={}, data=payload)
        else:
            response = self._make_request('GET', params=payload)

        try:
            body = response.json()
        except ValueError:
            raise WikiApiError('invalidjson', response.text[:200])

        if 'error' in body:
            error = body['error']
            raise WikiApiError(error.get('code', 'unknown'), error.get('info', ''))

        for module, warning in body.get('warnings', {}).items():
            logger.debug(f"API warning from {module}: {warning}")

        return body

    def query(self, params: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
        """
        Run ``action=query`` and follow ``continue`` tokens.

        Yields:
            The ``query`` object of every response batch
        """
        request_params = dict(params)
        request_params['action'] = 'query'
        last_continue: Dict[str, Any] = {}

        while True:
            batch_params = dict(request_params)
            batch_params.update(last_continue)
            body = self.call(batch_params)

            if 'query' in body:
                yield body['query']

            if 'continue' not in body:
                break
            last_continue = body['continue']

    def login(self) -> None:
        """Log in with bot credentials if configured."""
        if not self.username or not self.password or self.logged_in:
            return

        tokens = self.call({'action': 'query', 'meta': 'tokens', 'type': 'login'})
        login_token = tokens['query']['tokens']['logintoken']

        result = self.call({
            'action': 'login',
            'lgname': self.username,
            'lgpassword': self.password,
            'lgtoken': login_token
        }, method='POST')

        status = result.get('login', {}).get('result')
        if status != 'Success':
            raise WikiApiError('loginfailed', result.get('login', {}).get('reason', str(status)))

        self.logged_in = True
        logger.info(f"Logged in to {self.api_url} as {self.username}")

    def get_site_info(self) -> Dict[str, Any]:
        """Fetch general site information, statistics and namespaces."""
        body = self.call({
            'action': 'query',
            'meta': 'siteinfo',
            'siprop': 'general|statistics|namespaces'
        })
        return body.get('query', {})

    def get_pages(self, titles: Optional[List[str]] = None, pageids: Optional[List[int]] = None,
                  **extra: Any) -> List[Dict[str, Any]]:
        """
        Fetch page objects for titles or page ids (``prop=info`` unless overridden).

        Missing and invalid pages are returned with their ``missing``/``invalid`` flags.
        """
        params: Dict[str, Any] = {'prop': 'info'}
        params.update(extra)
        if titles:
            params['titles'] = titles
        if pageids:
            params['pageids'] = pageids

        pages: Dict[Any, Dict[str, Any]] = {}
        for batch in self.query(params):
            for page in batch.get('pages', []):
                key = page.get('pageid') or page.get('title')
                # Continuation batches repeat pages with additional props
                existing = pages.setdefault(key, {})
                for name, value in page.items():
                    if isinstance(value, list) and isinstance(existing.get(name), list):
                        existing[name].extend(value)
                    else:
                        existing[name] = value
        return list(pages.values())

    def get_page_content(self, title: str) -> Optional[Dict[str, Any]]:
        """Fetch the latest revision (content, timestamp, user) of a page."""
        body = self.call({
            'action': 'query',
            'prop': 'revisions',
            'titles': title,
            'rvprop': 'content|timestamp|user|ids',
            'rvslots': 'main'
        })
        pages = body.get('query', {}).get('pages', [])
        if not pages or pages[0].get('missing') or pages[0].get('invalid'):
            return None
        return pages[0]

    def get_first_revision(self, title: str) -> Optional[Dict[str, Any]]:
        """Fetch the oldest revision of a page (its creator)."""
        body = self.call({
            'action': 'query',
            'prop': 'revisions',
            'titles': title,
            'rvprop': 'user|timestamp',
            'rvdir': 'newer',
            'rvlimit': 1
        })
        pages = body.get('query', {}).get('pages', [])
        if not pages or not pages[0].get('revisions'):
            return None
        return pages[0]['revisions'][0]

    def get_categories(self, title: str) -> List[Dict[str, Any]]:
        """List categories a page belongs to."""
        categories = []
        for batch in self.query({'prop': 'categories', 'titles': title, 'cllimit': 'max'}):
            for page in batch.get('pages', []):
                categories.extend(page.get('categories', []))
        return categories

    def get_links(self, title: str) -> List[Dict[str, Any]]:
        """List pages linked from a page."""
        links = []
        for batch in self.query({'prop': 'links', 'titles': title, 'pllimit': 'max'}):
            for page in batch.get('pages', []):
                links.extend(page.get('links', []))
        return links

    def get_category_members(self, category: str, limit: int = 100) -> List[Dict[str, Any]]:
        """List up to ``limit`` members of a category (title with or without prefix)."""
        members: List[Dict[str, Any]] = []
        params = {
            'list': 'categorymembers',
            'cmtitle': category,
            'cmlimit': min(limit, 500),
            'cmprop': 'ids|title'
        }
        for batch in self.query(params):
            members.extend(batch.get('categorymembers', []))
            if len(members) >= limit:
                break
        return members[:limit]

    def get_all_pages(self, namespace: int) -> Iterator[Dict[str, Any]]:
        """Yield ``{pageid, ns, title}`` for every page of a namespace."""
        for batch in self.query({'list': 'allpages', 'apnamespace': namespace, 'aplimit': 'max'}):
            yield from batch.get('allpages', [])

    def parse(self, text: str, title: Optional[str] = None) -> Optional[str]:
        """
        Render wikitext to HTML with ``action=parse``.

        Returns:
            Rendered HTML, or None if the response carries no text
        """
        body = self.call({
            'action': 'parse',
            'text': text,
            'title': title,
            'contentmodel': 'wikitext',
            'prop': 'text',
            'disablelimitreport': 1,
            'disableeditsection': 1
        }, method='POST')
        return body.get('parse', {}).get('text')

    def ask(self, query: str) -> Dict[str, Any]:
        """Run a Semantic MediaWiki ``action=ask`` query and return its results."""
        body = self.call({'action': 'ask', 'query': query})
        return body.get('query', {}).get('results', {}) or {}

    @staticmethod
    def _encode_param(value: Any) -> Any:
        """Encode list parameters the way the API expects (pipe-separated)."""
        if isinstance(value, (list, tuple, set)):
            return '|'.join(str(item) for item in value)
        if isinstance(value, bool):
            return 1 if value else None
        return value

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'WikiClient':
        """
        Initialize the client from a configuration dictionary.

        Args:
            config: Configuration dictionary with wiki and advanced settings

        Returns:
            WikiClient instance
        """
        wiki_config = config.get('wiki', {})
        advanced_config = config.get('advanced', {})

        return cls(
            api_url=wiki_config.get('api_url'),
            username=wiki_config.get('username'),
            password=wiki_config.get('password'),
            verify_ssl=wiki_config.get('verify_ssl', True),
            timeout=advanced_config.get('request_timeout', 30),
            max_retries=advanced_config.get('max_retries', 3),
            retry_backoff_factor=advanced_config.get('retry_backoff_factor', 2.0),
            rate_limit=advanced_config.get('rate_limit', 0.0),
            user_agent=wiki_config.get('user_agent', DEFAULT_USER_AGENT)
        )


__all__ = ['WikiClient', 'WikiApiError', 'ID_BATCH_SIZE']
