"""Slack Web API (subset) over httpx.

Only what slackcat needs: post a message, upload a file, and turn a channel
name into a conversation ID. Every failure surfaces as `TransportError`
(network, HTTP status, `"ok": false`); channel lookups that find nothing
raise `ConfigError`.
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Any

import httpx

from core.config import AppSettings
from core.errors import ConfigError, TransportError

_CONVERSATION_ID_RE = re.compile(r"^[CGD][A-Z0-9]{6,}$")
_PAGE_LIMIT = 200


def is_conversation_id(name: str) -> bool:
    """True for raw Slack IDs (`C...`, `G...`, `D...`) that need no lookup."""

    return bool(_CONVERSATION_ID_RE.match(name))


def escape_text(text: str) -> str:
    """Escape the three control characters Slack's mrkdwn reserves."""

    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


class SlackApi:
    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: AppSettings | None = None,
        *,
        max_retries: int | None = None,
    ) -> None:
        self._client = client
        self._settings = settings or AppSettings()
        self._base_url = self._settings.api_base_url.rstrip("/")
        self._max_retries = self._settings.http_max_retries if max_retries is None else max_retries

    async def _send(self, method: str, url: str, *, strip_auth: bool = False, **kwargs: Any) -> httpx.Response:
        attempt = 0
        while True:
            request = self._client.build_request(method, url, **kwargs)
            if strip_auth:
                request.headers.pop("Authorization", None)
            try:
                response = await self._client.send(request)
            except httpx.HTTPError as exc:
                raise TransportError(f"{url}: {exc}") from exc

            if response.status_code == 429 and attempt < self._max_retries:
                attempt += 1
                retry_after = response.headers.get("Retry-After", "1")
                delay = float(retry_after) if retry_after.isdigit() else 1.0
                await asyncio.sleep(delay)
                continue

            if response.status_code >= 400:
                raise TransportError(f"{url}: HTTP {response.status_code}")
            return response

    async def call(
        self,
        api_method: str,
        *,
        json: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Invoke `api_method` and return the decoded payload (only when `ok`)."""

        url = f"{self._base_url}/{api_method}"
        if json is not None:
            response = await self._send("POST", url, json=json)
        elif data is not None:
            response = await self._send("POST", url, data=data)
        else:
            response = await self._send("GET", url, params=params)

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(f"{api_method}: invalid JSON response") from exc

        if not isinstance(payload, dict) or not payload.get("ok"):
            error = payload.get("error") if isinstance(payload, dict) else None
            raise TransportError(f"{api_method}: {error or 'unknown_error'}")
        return payload

    async def _paginate(self, api_method: str, key: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        cursor = ""
        while True:
            page = await self.call(api_method, params={**params, "limit": _PAGE_LIMIT, "cursor": cursor})
            raw = page.get(key, [])
            if isinstance(raw, list):
                items.extend(i for i in raw if isinstance(i, dict))
            cursor = (page.get("response_metadata") or {}).get("next_cursor") or ""
            if not cursor:
                return items

    async def auth_test(self) -> dict[str, Any]:
        return await self.call("auth.test", data={})

    async def lookup_conversation_id(self, channel: str) -> str:
        """Resolve `#name`, `name`, `@user` or a raw ID to a conversation ID."""

        name = channel.strip()
        if name.startswith("@"):
            return await self._open_direct_message(name[1:])

        name = name.lstrip("#")
        if is_conversation_id(name):
            return name

        conversations = await self._paginate(
            "conversations.list",
            "channels",
            {"types": "public_channel,private_channel", "exclude_archived": "true"},
        )
        for conv in conversations:
            if conv.get("name") == name:
                return str(conv["id"])
        raise ConfigError(f"no such channel: {channel}")

    async def _open_direct_message(self, username: str) -> str:
        members = await self._paginate("users.list", "members", {})
        for member in members:
            profile = member.get("profile") or {}
            if username in (member.get("name"), profile.get("display_name")):
                opened = await self.call("conversations.open", json={"users": member["id"]})
                return str(opened["channel"]["id"])
        raise ConfigError(f"no such user: @{username}")

    async def post_message(self, channel_id: str, text: str) -> dict[str, Any]:
        return await self.call(
            "chat.postMessage",
            json={"channel": channel_id, "text": escape_text(text)},
        )

    async def upload_bytes(self, url: str, filename: str, content: bytes) -> None:
        # Pre-signed URL: no bearer token, plain multipart.
        await self._send("POST", url, strip_auth=True, files={"file": (filename, content)})

    async def upload_file(
        self,
        *,
        channel_id: str,
        path: Path,
        filename: str,
        filetype: str | None = None,
        comment: str | None = None,
    ) -> str:
        """External upload flow. Returns the Slack file ID."""

        content = path.read_bytes()
        params: dict[str, Any] = {"filename": filename, "length": len(content)}
        if filetype:
            params["snippet_type"] = filetype
        ticket = await self.call("files.getUploadURLExternal", data=params)

        await self.upload_bytes(str(ticket["upload_url"]), filename, content)

        body: dict[str, Any] = {
            "files": [{"id": ticket["file_id"], "title": filename}],
            "channel_id": channel_id,
        }
        if comment:
            body["initial_comment"] = comment
        await self.call("files.completeUploadExternal", json=body)
        return str(ticket["file_id"])
