# github.py -- Remote object service backed by the GitHub REST API
# Copyright (C) 2026 The ghtree contributors
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# ghtree is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""Remote object service backed by the GitHub REST API.

Only the Git Data endpoints are used: trees, blobs, commits and refs, plus
the commit and branch listings needed to find a branch tip. Two transports
are available. :class:`Urllib3GitHubService` is the default and runs each
blocking request in a worker thread; :class:`AiohttpGitHubService` needs the
optional aiohttp dependency and is natively asynchronous.
"""

__all__ = [
    "API_VERSION",
    "DEFAULT_API_URL",
    "AbstractGitHubService",
    "AiohttpGitHubService",
    "Urllib3GitHubService",
    "check_for_proxy_bypass",
    "default_urllib3_manager",
    "default_user_agent_string",
    "get_service",
]

import asyncio
import base64
import ipaddress
import json
import os
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlencode, urlparse

import ghtree

from .config import DEFAULT_API_URL, ConfigDict, Settings, StackedConfig
from .errors import (
    HTTPUnauthorized,
    RemoteNotFound,
    RemoteServiceError,
    TruncatedTreeError,
)
from .hashing import valid_hexsha
from .log_utils import getLogger
from .remote import RemoteObjectService, TreeItem

if TYPE_CHECKING:
    import aiohttp
    import urllib3

logger = getLogger(__name__)

API_VERSION = "2022-11-28"
BRANCHES_PER_PAGE = 100

# Part of the message GitHub sends with a 422 for a rejected ref update.
_NOT_FAST_FORWARD = "not a fast forward"


def default_user_agent_string() -> str:
    """Return the default user agent string for ghtree."""
    return "ghtree/{}".format(".".join([str(x) for x in ghtree.__version__]))


def check_for_proxy_bypass(base_url: str | None) -> bool:
    """Check if no_proxy asks for the proxy to be bypassed for base_url."""
    if not base_url:
        return False
    no_proxy_str = os.environ.get("no_proxy") or os.environ.get("NO_PROXY")
    if not no_proxy_str:
        return False
    hostname = urlparse(base_url).hostname
    if not hostname:
        return False
    try:
        hostname_ip = ipaddress.ip_address(hostname)
    except ValueError:
        hostname_ip = None
    for no_proxy_value in no_proxy_str.split(","):
        no_proxy_value = no_proxy_value.strip().lower().lstrip(".")
        if not no_proxy_value:
            continue
        if no_proxy_value == "*":
            return True
        if hostname_ip is not None:
            try:
                network = ipaddress.ip_network(no_proxy_value, strict=False)
            except ValueError:
                pass
            else:
                if hostname_ip in network:
                    return True
        if hostname == no_proxy_value or hostname.endswith("." + no_proxy_value):
            return True
    return False


def default_urllib3_manager(
    config: ConfigDict | StackedConfig | None,
    pool_manager_cls: type | None = None,
    proxy_manager_cls: type | None = None,
    base_url: str | None = None,
    timeout: float | None = None,
    cert_reqs: str | None = None,
) -> "urllib3.ProxyManager | urllib3.PoolManager":
    """Return urllib3 connection pool manager.

    Honour detected proxy configurations and the ``[http]`` section of the
    configuration (``proxy``, ``userAgent``, ``sslVerify``, ``sslCAInfo``,
    ``timeout``).

    Args:
      config: Configuration to read ``[http]`` settings from
      pool_manager_cls: Pool manager class to use
      proxy_manager_cls: Proxy manager class to use
      base_url: Base URL for proxy bypass checks
      timeout: Timeout for HTTP requests in seconds
      cert_reqs: SSL certificate requirements (e.g. "CERT_REQUIRED", "CERT_NONE")

    Returns:
      Either pool_manager_cls (defaults to `urllib3.PoolManager`) instance,
      or proxy_manager_cls (defaults to `urllib3.ProxyManager`) instance for
      proxy configurations
    """
    proxy_server: str | None = None
    user_agent: str | None = None
    ca_certs: str | None = None
    ssl_verify: bool | None = None

    for proxyname in ("https_proxy", "http_proxy", "all_proxy"):
        proxy_server = os.environ.get(proxyname)
        if proxy_server:
            break

    if proxy_server and check_for_proxy_bypass(base_url):
        proxy_server = None

    if config is not None:
        if not proxy_server:
            try:
                proxy_server = config.get("http", "proxy")
            except KeyError:
                pass
        try:
            user_agent = config.get("http", "useragent")
        except KeyError:
            pass
        ssl_verify = config.get_boolean("http", "sslVerify")
        try:
            ca_certs = config.get("http", "sslCAInfo")
        except KeyError:
            pass
        if timeout is None:
            try:
                timeout = float(config.get("http", "timeout"))
            except KeyError:
                pass

    if user_agent is None:
        user_agent = default_user_agent_string()

    headers = {"User-agent": user_agent}

    kwargs: dict[str, str | float | None] = {
        "ca_certs": ca_certs,
    }
    if timeout is not None:
        kwargs["timeout"] = timeout

    if cert_reqs is not None:
        kwargs["cert_reqs"] = cert_reqs
    elif ssl_verify is False:
        kwargs["cert_reqs"] = "CERT_NONE"
    else:
        kwargs["cert_reqs"] = "CERT_REQUIRED"

    import urllib3

    manager: urllib3.ProxyManager | urllib3.PoolManager
    if proxy_server:
        if proxy_manager_cls is None:
            proxy_manager_cls = urllib3.ProxyManager
        proxy_server_url = urlparse(proxy_server)
        if proxy_server_url.username is not None:
            proxy_headers = urllib3.make_headers(
                proxy_basic_auth=f"{proxy_server_url.username}:{proxy_server_url.password or ''}"
            )
        else:
            proxy_headers = {}
        logger.debug("using proxy %s", proxy_server_url.hostname)
        manager = proxy_manager_cls(
            proxy_server, proxy_headers=proxy_headers, headers=headers, **kwargs
        )
    else:
        if pool_manager_cls is None:
            pool_manager_cls = urllib3.PoolManager
        manager = pool_manager_cls(headers=headers, **kwargs)

    return manager


def _error_message(data: bytes) -> str | None:
    try:
        body = json.loads(data)
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("message")
    return None


class AbstractGitHubService(RemoteObjectService):
    """Talks to the Git Data API of a single GitHub repository.

    Subclasses provide :meth:`_http_request`; everything else (URLs, JSON
    bodies, status handling) lives here.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str | None = None,
        base_url: str = DEFAULT_API_URL,
    ) -> None:
        """Create a GitHub service.

        Args:
          owner: User or organization that owns the repository
          repo: Name of the repository
          token: Access token; anonymous requests are made without one
          base_url: Root of the REST API, for GitHub Enterprise or tests
        """
        self.owner = owner
        self.repo = repo
        self._token = token
        self._base_url = base_url.rstrip("/")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.owner!r}, {self.repo!r}, base_url={self._base_url!r})"

    @property
    def repo_url(self) -> str:
        return f"{self._base_url}/repos/{quote(self.owner)}/{quote(self.repo)}"

    def _get_url(self, path: str, params: Mapping[str, str | int] | None = None) -> str:
        url = f"{self.repo_url}/{path}"
        if params:
            url += "?" + urlencode(params)
        return url

    def _headers(self, has_body: bool) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        if has_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def _http_request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> tuple[int, bytes]:
        """Perform HTTP request.

        Args:
          method: HTTP method
          url: Request URL
          headers: Request headers
          body: Request body, if any

        Returns:
          Tuple (status, response body)

        Raises:
          RemoteServiceError: if the remote could not be reached
        """
        raise NotImplementedError(self._http_request)

    async def _request(
        self,
        method: str,
        path: str,
        payload: Mapping[str, Any] | None = None,
        params: Mapping[str, str | int] | None = None,
    ) -> Any:
        url = self._get_url(path, params)
        body = None if payload is None else json.dumps(payload).encode("utf-8")
        logger.debug("%s %s", method, url)
        status, data = await self._http_request(
            method, url, self._headers(body is not None), body
        )
        if status == 401:
            raise HTTPUnauthorized(url)
        if status == 404:
            raise RemoteNotFound(url)
        if not 200 <= status < 300:
            message = _error_message(data)
            raise RemoteServiceError(
                f"unexpected http resp {status} for {method} {url}"
                + (f": {message}" if message else ""),
                status,
                reason=message,
            )
        if not data:
            return None
        try:
            return json.loads(data)
        except ValueError as e:
            raise RemoteServiceError(f"invalid JSON in response to {url}") from e

    def _object_id(self, value: Any) -> str:
        if not valid_hexsha(value):
            raise RemoteServiceError(f"invalid object id {value!r} from {self.repo_url}")
        return value

    async def get_tree(self, treeish: str) -> list[TreeItem]:
        body = await self._request(
            "GET", f"git/trees/{quote(treeish)}", params={"recursive": 1}
        )
        if body.get("truncated"):
            raise TruncatedTreeError(body["sha"])
        return [
            TreeItem(
                item["path"],
                item["mode"],
                item["type"],
                self._object_id(item["sha"]),
                item.get("size"),
            )
            for item in body["tree"]
        ]

    async def get_blob(self, object_id: str) -> bytes:
        body = await self._request("GET", f"git/blobs/{quote(object_id)}")
        if body.get("encoding") == "base64":
            return base64.b64decode(body["content"])
        return body["content"].encode("utf-8")

    async def create_blob(self, content: bytes) -> str:
        body = await self._request(
            "POST",
            "git/blobs",
            {"content": base64.b64encode(content).decode("ascii"), "encoding": "base64"},
        )
        return self._object_id(body["sha"])

    async def create_tree(self, items: Sequence[TreeItem]) -> str:
        body = await self._request(
            "POST", "git/trees", {"tree": [item.as_json() for item in items]}
        )
        return self._object_id(body["sha"])

    async def create_commit(
        self, tree_id: str, parent_commit_id: str | None, message: str
    ) -> str:
        body = await self._request(
            "POST",
            "git/commits",
            {
                "message": message,
                "tree": tree_id,
                "parents": [parent_commit_id] if parent_commit_id else [],
            },
        )
        return self._object_id(body["sha"])

    async def update_ref(self, branch: str, commit_id: str) -> bool:
        try:
            await self._request(
                "PATCH",
                f"git/refs/heads/{quote(branch)}",
                {"sha": commit_id, "force": False},
            )
        except RemoteServiceError as e:
            # A missing ref is also a 422, with a different message.
            if e.status == 422 and _NOT_FAST_FORWARD in (e.reason or "").lower():
                logger.debug("update of %s rejected: %s", branch, e)
                return False
            raise
        return True

    async def list_commits(self, branch: str, limit: int = 1) -> list[tuple[str, str]]:
        body = await self._request(
            "GET", "commits", params={"sha": branch, "per_page": limit}
        )
        return [
            (self._object_id(item["sha"]), self._object_id(item["commit"]["tree"]["sha"]))
            for item in body[:limit]
        ]

    async def list_branches(self) -> list[str]:
        ret: list[str] = []
        page = 1
        while True:
            body = await self._request(
                "GET", "branches", params={"per_page": BRANCHES_PER_PAGE, "page": page}
            )
            ret.extend(item["name"] for item in body)
            if len(body) < BRANCHES_PER_PAGE:
                return ret
            page += 1


class Urllib3GitHubService(AbstractGitHubService):
    """GitHub service that uses urllib3 for HTTP(S) connections."""

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str | None = None,
        base_url: str = DEFAULT_API_URL,
        pool_manager: "urllib3.PoolManager | None" = None,
        config: ConfigDict | StackedConfig | None = None,
        timeout: float | None = None,
        cert_reqs: str | None = None,
    ) -> None:
        self._timeout = timeout
        if pool_manager is None:
            self.pool_manager = default_urllib3_manager(
                config, base_url=base_url, timeout=timeout, cert_reqs=cert_reqs
            )
        else:
            self.pool_manager = pool_manager
        super().__init__(owner, repo, token=token, base_url=base_url)

    def _blocking_request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
    ) -> tuple[int, bytes]:
        import urllib3.exceptions

        req_headers = dict(self.pool_manager.headers)
        req_headers.update(headers)
        request_kwargs: dict[str, Any] = {"headers": req_headers, "body": body}
        if self._timeout is not None:
            request_kwargs["timeout"] = self._timeout
        try:
            resp = self.pool_manager.request(method, url, **request_kwargs)
        except urllib3.exceptions.HTTPError as e:
            raise RemoteServiceError(str(e)) from e
        return resp.status, resp.data

    async def _http_request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> tuple[int, bytes]:
        return await asyncio.to_thread(self._blocking_request, method, url, headers, body)

    async def close(self) -> None:
        self.pool_manager.clear()


class AiohttpGitHubService(AbstractGitHubService):
    """GitHub service that uses aiohttp for HTTP(S) connections.

    A session is created on first use unless one is passed in; only a
    session created here is closed by :meth:`close`.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str | None = None,
        base_url: str = DEFAULT_API_URL,
        session: "aiohttp.ClientSession | None" = None,
        timeout: float | None = None,
        verify_ssl: bool = True,
        user_agent: str | None = None,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._user_agent = user_agent or default_user_agent_string()
        super().__init__(owner, repo, token=token, base_url=base_url)

    def _get_session(self) -> "aiohttp.ClientSession":
        if self._session is None:
            import aiohttp

            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self._user_agent},
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self._session

    async def _http_request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> tuple[int, bytes]:
        import aiohttp

        session = self._get_session()
        request_kwargs: dict[str, Any] = {"headers": headers, "data": body}
        if not self._verify_ssl:
            request_kwargs["ssl"] = False
        try:
            async with session.request(method, url, **request_kwargs) as resp:
                return resp.status, await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RemoteServiceError(str(e) or type(e).__name__) from e

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None


def get_service(
    settings: Settings, config: ConfigDict | StackedConfig | None = None
) -> AbstractGitHubService:
    """Create the service described by settings.

    Raises:
      ValueError: if the configured transport is unknown
    """
    if settings.transport == "urllib3":
        return Urllib3GitHubService(
            settings.owner,
            settings.repo,
            token=settings.token,
            base_url=settings.url,
            config=config,
            timeout=settings.timeout,
            cert_reqs=None if settings.verify_ssl else "CERT_NONE",
        )
    elif settings.transport == "aiohttp":
        return AiohttpGitHubService(
            settings.owner,
            settings.repo,
            token=settings.token,
            base_url=settings.url,
            timeout=settings.timeout,
            verify_ssl=settings.verify_ssl,
        )
    raise ValueError(f"unknown transport {settings.transport!r}")
