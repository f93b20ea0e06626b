"""Daily.co room provider."""

from __future__ import annotations

import logging
import re
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from app.application.interfaces import AllocatedRoom, RoomProviderInterface
from app.config.settings import settings
from app.domain.errors import RoomProviderError

logger = logging.getLogger(__name__)

_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9\-_]")
_DASH_RUNS = re.compile(r"-+")


def sanitize_room_name(name: str) -> str:
    """Reduce a display name to the character set Daily accepts."""

    cleaned = _DASH_RUNS.sub("-", _INVALID_NAME_CHARS.sub("-", name))
    return cleaned.strip("-")


def generate_room_name(custom_name: Optional[str] = None) -> str:
    if custom_name and custom_name.strip():
        sanitized = sanitize_room_name(custom_name.strip())
        if sanitized:
            return sanitized
    return f"room-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


class DailyRoomProvider(RoomProviderInterface):
    """Creates raw-track recording rooms and meeting tokens over the Daily REST API."""

    def __init__(
        self,
        *,
        api_url: str | None = None,
        api_key: str | None = None,
        expiry_hours: int | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        config = settings.rooms
        self._api_url = (api_url or config.api_url).rstrip("/")
        self._api_key = api_key if api_key is not None else config.api_key.get_secret_value()
        self._expiry_hours = expiry_hours or config.room_expiry_hours
        self._timeout = timeout or config.request_timeout_seconds
        self._transport = transport

    async def create_room(self, name: Optional[str] = None) -> AllocatedRoom:
        room_name = generate_room_name(name)
        expires_at = datetime.now(timezone.utc) + timedelta(hours=self._expiry_hours)
        payload = {
            "name": room_name,
            "privacy": "public",
            "properties": {
                "enable_recording": "raw-tracks",
                "exp": int(expires_at.timestamp()),
                "sfu_switchover": 0.5,
            },
        }
        data = await self._post("/rooms", payload, "room creation")
        logger.info("Created room name=%s expires_at=%s", data.get("name"), expires_at)
        try:
            return AllocatedRoom(
                name=data["name"],
                url=data["url"],
                expires_at=expires_at,
            )
        except KeyError as exc:
            raise RoomProviderError(f"Room provider response missing {exc}") from exc

    async def create_meeting_token(self, room_name: str, expires_at: datetime) -> str:
        payload = {
            "properties": {
                "room_name": room_name,
                "exp": int(expires_at.timestamp()),
                "eject_at_token_exp": True,
                "enable_screenshare": False,
                "start_video_off": True,
                "start_audio_off": False,
                "enable_recording": "raw-tracks",
            }
        }
        data = await self._post("/meeting-tokens", payload, "token creation")
        token = data.get("token")
        if not token:
            raise RoomProviderError("Room provider returned no meeting token")
        return token

    async def _post(self, path: str, payload: dict[str, Any], label: str) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        async with httpx.AsyncClient(
            base_url=self._api_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(path, json=payload, headers=headers)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as exc:
                raise RoomProviderError(
                    f"Daily {label} failed: {exc.response.status_code} {exc.response.text}"
                ) from exc
            except httpx.RequestError as exc:
                raise RoomProviderError(f"Unable to reach Daily for {label}: {exc}") from exc
            except ValueError as exc:
                raise RoomProviderError(f"Invalid response from Daily: {exc}") from exc


__all__ = ["DailyRoomProvider", "generate_room_name", "sanitize_room_name"]
