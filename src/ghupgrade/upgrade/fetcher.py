"""
HTTP access to GitHub release endpoints and assets.

`request` is the circuit breaker's primary path and goes through the response
cache; `fetch` is the uncached path used as the breaker fallback and for
archive downloads.
"""

from typing import Dict, Mapping, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry  # type: ignore

from ghupgrade.constants import (
    CONNECT_TIMEOUT_SECONDS,
    DEFAULT_DOWNLOAD_TIMEOUT,
    GITHUB_API_VERSION,
    GITHUB_JSON_MEDIA_TYPE,
    MAX_REDIRECTS,
    OCTET_STREAM_MEDIA_TYPE,
    TIMEOUT_IN_SECONDS,
)
from ghupgrade.exceptions import TransportError
from ghupgrade.log_utils import logger
from ghupgrade.utils import TokenResolver, get_user_agent

from .cache import ResponseCache, entry_from_response, response_from_entry


def _error_code(exc: requests.RequestException) -> Union[int, str]:
    """
    Best-effort low-level error code for a transport exception.

    Prefers an errno found on the exception chain, otherwise the exception class name.
    """
    current: Optional[BaseException] = exc
    seen = 0
    while current is not None and seen < 10:
        errno = getattr(current, "errno", None)
        if isinstance(errno, int):
            return errno
        reason = getattr(current, "reason", None)
        if isinstance(reason, BaseException):
            current = reason
        elif current.args and isinstance(current.args[0], BaseException):
            current = current.args[0]
        else:
            current = current.__cause__ or current.__context__
        seen += 1
    return type(exc).__name__


def _build_session() -> requests.Session:
    """
    Create a session that issues each request exactly once.

    Transport failures surface immediately so the circuit breaker sees every one.
    """
    session = requests.Session()
    retry_strategy: Retry = Retry(
        total=0,
        connect=0,
        read=0,
        status=0,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class ReleaseFetcher:
    """
    Issues authenticated GET requests against the GitHub API.

    Every request uses a 5 second connect timeout, TLS verification (system
    bundle via requests, or `ca_bundle` when configured) and follows at most
    5 redirects. Only transport failures are failures here; the HTTP status
    is left to the caller.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        cache: Optional[ResponseCache] = None,
        token_resolver: Optional[TokenResolver] = None,
        debug_mode: bool = False,
        ca_bundle: Optional[str] = None,
        download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
    ):
        """
        Parameters:
            session (requests.Session | None): Session to issue requests with; a new one is created if omitted.
            cache (ResponseCache | None): Cache consulted by `request`; None disables caching.
            token_resolver (TokenResolver | None): Source of the bearer token; defaults to environment/.env lookup.
            debug_mode (bool): Raise TransportError from `fetch` instead of degrading to an empty body.
            ca_bundle (str | None): Path to a CA bundle overriding the default trust store.
            download_timeout (float): Read timeout for `fetch` calls that do not pass one.
        """
        self.session = session or _build_session()
        self.session.max_redirects = MAX_REDIRECTS
        self.cache = cache
        self.token_resolver = token_resolver or TokenResolver()
        self.debug_mode = debug_mode
        self.verify: Union[bool, str] = ca_bundle or True
        self.download_timeout = download_timeout

    def build_headers(
        self, download_mode: bool = False, force_auth: bool = False
    ) -> Dict[str, str]:
        """
        Build GitHub request headers.

        Parameters:
            download_mode (bool): Ask for raw asset bytes (`application/octet-stream`) instead of JSON.
            force_auth (bool): Asset API URLs need authorization even for public repositories;
                a missing token is reported as a warning.

        Returns:
            Dict[str, str]: Headers including the API version pin and, when a token resolves, the bearer token.
        """
        headers = {
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": get_user_agent(),
            "Accept": OCTET_STREAM_MEDIA_TYPE if download_mode else GITHUB_JSON_MEDIA_TYPE,
        }
        token = self.token_resolver.resolve()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        elif force_auth:
            logger.warning(
                "Asset downloads require a GitHub token; none is configured, trying without one"
            )
        return headers

    def _get(
        self, url: str, headers: Mapping[str, str], timeout: float
    ) -> requests.Response:
        """
        Issue a single GET.

        Raises:
            TransportError: On connection, TLS, timeout or redirect-limit failures.
        """
        logger.debug(f"Making GitHub request: {url}")
        try:
            response = self.session.get(
                url,
                headers=dict(headers),
                timeout=(CONNECT_TIMEOUT_SECONDS, timeout),
                verify=self.verify,
                allow_redirects=True,
            )
        except requests.RequestException as e:
            raise TransportError(url, error_code=_error_code(e), details=str(e)) from e

        logger.debug(f"Received HTTP {response.status_code} for {url}")
        return response

    def send(
        self,
        url: str,
        headers: Mapping[str, str],
        timeout: float = TIMEOUT_IN_SECONDS,
    ) -> requests.Response:
        """
        GET through the response cache.

        A cached entry for the exact URL is returned as a rebuilt 200 response
        without touching the network. Live responses are stored only when the
        status is 200.

        Raises:
            TransportError: When the live request fails at the transport level.
        """
        if self.cache is not None:
            entry = self.cache.get(url)
            if entry is not None:
                return response_from_entry(url, entry)

        response = self._get(url, headers, timeout)
        if self.cache is not None and response.status_code == 200:
            self.cache.put(url, entry_from_response(response))
        return response

    def request(
        self,
        url: str,
        headers: Mapping[str, str],
        timeout: float = TIMEOUT_IN_SECONDS,
    ) -> bytes:
        """
        Primary path for the circuit breaker: cached GET returning the body.

        Raises:
            TransportError: When the live request fails at the transport level.
        """
        return self.send(url, headers, timeout).content

    def fetch(
        self,
        url: str,
        headers: Mapping[str, str],
        timeout: Optional[float] = None,
    ) -> bytes:
        """
        Uncached GET returning the raw body, whatever the HTTP status.

        In production mode a transport failure degrades to an empty body; in
        debug mode it is raised with the URL and low-level error code.

        Raises:
            TransportError: Only when `debug_mode` is enabled.
        """
        try:
            response = self._get(url, headers, timeout or self.download_timeout)
        except TransportError as e:
            if self.debug_mode:
                raise
            logger.warning(f"Could not reach {url}: {e}")
            return b""
        return response.content

    def close(self) -> None:
        self.session.close()
