"""Structured request logging with an encrypted per-caller session token."""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar, Optional
from uuid import uuid4

from cryptography.fernet import Fernet
from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from app.config.settings import settings
from app.utils import AuthenticationError, decode_access_token

logger = logging.getLogger("app.middleware.structured")

REQUEST_ID_HEADER = "X-Request-ID"

COLOR_RESET = "\u001b[0m"
COLOR_GREEN = "\u001b[32m"
COLOR_CYAN = "\u001b[36m"
COLOR_YELLOW = "\u001b[33m"
COLOR_RED = "\u001b[31m"


@dataclass(slots=True)
class CallerContext:
    user_id: str
    token: str


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, log one line for it and optionally persist it."""

    _cipher: ClassVar[Optional[Fernet]] = None

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start_time = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        request.state.request_id = request_id

        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc),
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }
        caller = self._caller_context(request)
        if caller is not None:
            payload["user_id"] = caller.user_id

        try:
            response = await call_next(request)
        except Exception:
            payload["status_code"] = 500
            payload["duration_ms"] = self._elapsed_ms(start_time)
            logger.exception(self._format_console_message(payload))
            raise

        payload["status_code"] = response.status_code
        payload["duration_ms"] = self._elapsed_ms(start_time)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(self._format_console_message(payload))
        await self._persist_log(payload, caller)
        return response

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return round((time.perf_counter() - start_time) * 1000, 2)

    async def _persist_log(
        self,
        payload: dict[str, Any],
        caller: Optional[CallerContext],
    ) -> None:
        if not settings.persist_request_logs:
            return

        from app.database import session_scope
        from app.models.log import RequestLog

        async with session_scope() as session:
            session.add(
                RequestLog(
                    timestamp=payload["timestamp"].replace(tzinfo=None),
                    request_id=payload["request_id"],
                    method=payload["method"],
                    path=payload["path"][:2048],
                    status_code=payload["status_code"],
                    duration_ms=int(payload["duration_ms"]),
                    client_ip=payload.get("client_ip"),
                    user_id=caller.user_id if caller else None,
                    session_token=caller.token if caller else None,
                )
            )
            try:
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                logger.exception("Failed to persist request log %s", payload["request_id"])

    def _caller_context(self, request: Request) -> Optional[CallerContext]:
        """Decode the bearer token, if any, into an opaque encrypted descriptor."""

        auth_header = request.headers.get("authorization") or ""
        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None
        try:
            claims = decode_access_token(token)
        except AuthenticationError:
            return None

        descriptor = {
            "user_id": claims.sub,
            "issued_at": claims.iat.isoformat() if claims.iat else None,
            "expires_at": claims.exp.isoformat() if claims.exp else None,
            "user_agent": (request.headers.get("user-agent") or "")[:256] or None,
        }
        return CallerContext(user_id=claims.sub, token=self._encrypt(descriptor))

    @classmethod
    def _encrypt(cls, metadata: dict[str, Any]) -> str:
        if cls._cipher is None:
            secret = settings.security.jwt_secret_key.get_secret_value().encode("utf-8")
            cls._cipher = Fernet(base64.urlsafe_b64encode(hashlib.sha256(secret).digest()))
        data = json.dumps(metadata, default=str, separators=(",", ":")).encode("utf-8")
        return cls._cipher.encrypt(data).decode("utf-8")

    @staticmethod
    def _format_console_message(payload: dict[str, Any]) -> str:
        status = payload.get("status_code") or 0
        if 200 <= status < 300:
            color = COLOR_GREEN
        elif 400 <= status < 500:
            color = COLOR_YELLOW
        elif status >= 500:
            color = COLOR_RED
        else:
            color = COLOR_CYAN

        fields = ("request_id", "method", "path", "status_code", "duration_ms", "user_id")
        message = ", ".join(f"{name}={payload.get(name, '-')}" for name in fields)
        return f"{color}{message}{COLOR_RESET}"
