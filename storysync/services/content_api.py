"""
storysync/services/content_api.py
Content API client: the remote source of truth for engagement and comments.

HttpContentApi speaks the story platform's REST API over httpx. Every failure
is normalized to NetworkFailure (request never completed) or RejectedByServer
(non-2xx answer); callers never see raw httpx exceptions. Any
httpx.RequestError, including a body that fails to decode, is a request that
never completed.
"""

import logging
from typing import Any, Dict, Optional, Protocol, Union

import httpx
from pydantic import ValidationError

from storysync.core.config import settings, validate_config
from storysync.core.errors import NetworkFailure, RejectedByServer
from storysync.core.logging import get_request_id
from storysync.models.comment import CommentBase, CommentPage, parse_comment
from storysync.models.engagement import LikeState, ListMembershipState
from storysync.models.story import MyListPayload, StoryPayload

logger = logging.getLogger("storysync")


class ContentApi(Protocol):
    """Logical operations consumed from the Content API."""

    async def fetch_story(self, story_id: str, credential: Optional[str] = None) -> StoryPayload: ...

    async def fetch_my_list(self, credential: Optional[str]) -> MyListPayload: ...

    async def toggle_like(self, story_id: str, credential: Optional[str]) -> LikeState: ...

    async def toggle_list_membership(self, story_id: str, credential: Optional[str]) -> ListMembershipState: ...

    async def increment_view(self, story_id: str, credential: Optional[str]) -> None: ...

    async def fetch_comments(self, story_id: str, page: int = 1, limit: Optional[int] = None) -> CommentPage: ...

    async def create_comment(
        self, story_id: str, content: str, parent_id: Optional[str], credential: Optional[str]
    ) -> CommentBase: ...

    async def update_comment(self, comment_id: str, content: str, credential: Optional[str]) -> CommentBase: ...

    async def delete_comment(self, comment_id: str, credential: Optional[str]) -> None: ...

    async def toggle_comment_like(self, comment_id: str, credential: Optional[str]) -> bool: ...


class HttpContentApi:
    """ContentApi over HTTP. Use as an async context manager or call aclose()."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if client is None and base_url is None:
            validate_config()
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout if timeout is not None else settings.API_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "HttpContentApi":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_story(self, story_id: str, credential: Optional[str] = None) -> StoryPayload:
        data = await self._request("GET", f"/api/stories/{story_id}", credential=credential)
        return _parse(StoryPayload, data.get("story", data))

    async def fetch_my_list(self, credential: Optional[str]) -> MyListPayload:
        data = await self._request("GET", "/api/my-list", credential=credential)
        return _parse(MyListPayload, data)

    async def toggle_like(self, story_id: str, credential: Optional[str]) -> LikeState:
        data = await self._request("POST", f"/api/stories/{story_id}/like", credential=credential)
        return _parse(LikeState, data)

    async def toggle_list_membership(self, story_id: str, credential: Optional[str]) -> ListMembershipState:
        data = await self._request("POST", f"/api/my-list/{story_id}", credential=credential)
        return _parse(ListMembershipState, data)

    async def increment_view(self, story_id: str, credential: Optional[str]) -> None:
        await self._request("POST", f"/api/stories/{story_id}/view", credential=credential)

    async def fetch_comments(self, story_id: str, page: int = 1, limit: Optional[int] = None) -> CommentPage:
        params = {"page": page, "limit": limit or settings.COMMENTS_PAGE_SIZE}
        data = await self._request("GET", f"/api/comments/stories/{story_id}/comments", params=params)
        return _parse(CommentPage, data)

    async def create_comment(
        self, story_id: str, content: str, parent_id: Optional[str], credential: Optional[str]
    ) -> CommentBase:
        body = {"content": content, "parentComment": parent_id}
        data = await self._request(
            "POST", f"/api/comments/stories/{story_id}/comments", credential=credential, json=body
        )
        return _parse(parse_comment, data.get("comment"))

    async def update_comment(self, comment_id: str, content: str, credential: Optional[str]) -> CommentBase:
        data = await self._request("PUT", f"/api/comments/{comment_id}", credential=credential, json={"content": content})
        return _parse(parse_comment, data.get("comment"))

    async def delete_comment(self, comment_id: str, credential: Optional[str]) -> None:
        await self._request("DELETE", f"/api/comments/{comment_id}", credential=credential)

    async def toggle_comment_like(self, comment_id: str, credential: Optional[str]) -> bool:
        data = await self._request("POST", f"/api/comments/{comment_id}/like", credential=credential)
        if not isinstance(data.get("liked"), bool):
            raise RejectedByServer("Malformed comment like response", status_code=502)
        return data["liked"]

    async def _request(
        self,
        method: str,
        path: str,
        *,
        credential: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers = {}
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        rid = get_request_id()
        if rid:
            headers["x-request-id"] = rid

        try:
            response = await self._client.request(method, path, headers=headers, params=params, json=json)
        except httpx.RequestError as exc:
            logger.warning("content_api.network_failure %s %s: %s", method, path, exc)
            raise NetworkFailure(f"{method} {path} did not complete: {exc}", request_id=rid) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.is_error:
            message = data.get("message") or f"{method} {path} returned {response.status_code}"
            raise RejectedByServer(message, status_code=response.status_code, request_id=rid)
        return data


def _parse(model: Union[type, Any], data: Any):
    """Validate a response body; malformed payloads count as a rejection."""
    try:
        if isinstance(model, type):
            return model.model_validate(data)
        return model(data)
    except (ValidationError, TypeError, AttributeError) as exc:
        raise RejectedByServer(f"Malformed response: {exc}", status_code=502) from exc
