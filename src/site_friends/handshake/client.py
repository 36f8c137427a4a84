"""HTTP client for the friends REST endpoints of remote sites."""

from dataclasses import dataclass
from typing import Any

import httpx
import orjson
from pydantic import ValidationError
from structlog import get_logger

from site_friends.exceptions import NetworkUnavailableError
from site_friends.handshake.models import FriendshipGrant, RemoteError


logger = get_logger(__name__)

REST_NAMESPACE = "friends/v1"


def rest_url(site_url: str, route: str) -> str:
    return f"{site_url.rstrip('/')}/wp-json/{REST_NAMESPACE}/{route}"


def canonical_url_from_link(link: str | None) -> str | None:
    """Site URL advertised by an API discovery ``Link`` header.

    ``<https://example.com/blog/wp-json/>; rel="https://api.w.org/"`` yields
    ``https://example.com/blog``.
    """
    if not link:
        return None
    end = link.find("wp-json/")
    if end == -1:
        return None
    start = link.find("<")
    return link[start + 1 : end].rstrip("/") or None


@dataclass(frozen=True)
class HelloResult:
    compatible: bool
    canonical_url: str | None = None
    version: str | None = None


@dataclass(frozen=True)
class RemoteReply:
    """A decoded response of a friends endpoint."""

    status_code: int
    body: Any
    text: str

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    def error(self) -> RemoteError | None:
        if not isinstance(self.body, dict):
            return None
        try:
            return RemoteError.model_validate(self.body)
        except ValidationError:
            return None

    def grant(self) -> FriendshipGrant | None:
        if not isinstance(self.body, dict):
            return None
        try:
            grant = FriendshipGrant.model_validate(self.body)
        except ValidationError:
            return None
        return None if grant.is_empty else grant


def _decode(response: httpx.Response) -> Any:
    try:
        return orjson.loads(response.content)
    except orjson.JSONDecodeError:
        return None


class RemoteSiteClient:
    """Calls ``hello``, ``friend-request`` and ``friend-request-accepted``."""

    def __init__(self, http_client: httpx.AsyncClient, *, timeout: float = 20.0) -> None:
        self.http_client = http_client
        self.timeout = timeout

    async def _request(
        self, method: str, url: str, data: dict[str, str] | None = None
    ) -> httpx.Response:
        try:
            return await self.http_client.request(
                method,
                url,
                data=data,
                timeout=self.timeout,
                follow_redirects=True,
            )
        except httpx.RequestError as e:
            logger.warning("remote_call_failed", method=method, url=url, error=str(e))
            raise NetworkUnavailableError(url, str(e) or type(e).__name__) from e

    async def hello(self, site_url: str) -> HelloResult:
        """Probe a site for the friends protocol.

        Any non-200 status or a body that is not a JSON object means the site
        does not speak the protocol. The canonical URL is taken from the
        ``Link`` header even then.

        Raises:
            NetworkUnavailableError: If the site could not be reached
        """
        response = await self._request("GET", rest_url(site_url, "hello"))
        canonical_url = canonical_url_from_link(response.headers.get("link"))
        body = _decode(response)
        if response.status_code != 200 or not isinstance(body, dict):
            logger.info(
                "remote_hello_incompatible",
                site_url=site_url,
                status_code=response.status_code,
            )
            return HelloResult(compatible=False, canonical_url=canonical_url)
        version = body.get("version")
        return HelloResult(
            compatible=True,
            canonical_url=canonical_url,
            version=str(version) if version is not None else None,
        )

    async def friend_request(
        self,
        site_url: str,
        own_site_url: str,
        name: str | None = None,
        email: str | None = None,
    ) -> RemoteReply:
        payload = {"site_url": own_site_url}
        if name:
            payload["name"] = name
        if email:
            payload["email"] = email
        return await self._post(rest_url(site_url, "friend-request"), payload)

    async def friend_request_accepted(
        self, site_url: str, token: str, friend_token: str | None = None
    ) -> RemoteReply:
        payload = {"token": token}
        if friend_token:
            payload["friend"] = friend_token
        return await self._post(rest_url(site_url, "friend-request-accepted"), payload)

    async def _post(self, url: str, payload: dict[str, str]) -> RemoteReply:
        response = await self._request("POST", url, data=payload)
        return RemoteReply(
            status_code=response.status_code,
            body=_decode(response),
            text=response.text,
        )
