"""
Microsoft Graph Gateway — calendar, To Do and OneDrive calls.

All outbound HTTP calls to Graph go through this class.
Direct `requests` calls in services or blueprints are FORBIDDEN.

  - OAuth2 client credentials with in-memory token cache + auto-refresh
  - Retry: max 2 retries on network errors / 5xx, backoff (1 s → 4 s)
  - Timeout: 30 s (configurable per call)
  - 401 → evict the cached token and retry once

Credentials come from app config (GRAPH_TENANT_ID, GRAPH_CLIENT_ID,
GRAPH_CLIENT_SECRET). With no credentials every operation raises
GraphNotConfiguredError, which callers treat like any other sync failure.

Testability: pass a mock `session` (and `retry_backoff=(0, 0)`) to
GraphGateway() in tests instead of letting it create a real requests.Session.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import quote

import requests
from flask import current_app

logger = logging.getLogger(__name__)

# ── Retry constants ────────────────────────────────────────────────────────
_RETRY_MAX = 2
_RETRY_BACKOFF_SECONDS = (1, 4)

# ── Default request timeout ────────────────────────────────────────────────
_DEFAULT_TIMEOUT = 30

DEFAULT_BASE_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"


class GraphGatewayError(Exception):
    """A Graph call failed after retries."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class GraphNotConfiguredError(GraphGatewayError):
    """Graph credentials are not configured for this deployment."""


class GatewayResult:
    """Structured return value from GraphGateway.request.

    Attributes:
        ok:           True if the call succeeded (HTTP 2xx + no exception).
        status_code:  HTTP status code (None if network-level failure).
        data:         Parsed JSON response body, else None.
        content:      Raw response bytes (downloads).
        error:        Human-readable error message or None.
        duration_ms:  Round-trip latency in milliseconds.
    """

    def __init__(
        self,
        ok: bool,
        status_code: int | None,
        data: dict | list | None,
        error: str | None,
        duration_ms: int,
        content: bytes | None = None,
    ) -> None:
        self.ok = ok
        self.status_code = status_code
        self.data = data
        self.error = error
        self.duration_ms = duration_ms
        self.content = content

    def raise_for_error(self, action: str) -> None:
        if not self.ok:
            raise GraphGatewayError(f"{action} failed: {self.error}", self.status_code)


class GraphGateway:
    """Microsoft Graph REST gateway.

    Instantiate once at module level (module-level singleton pattern).

    Usage:
        from app.integrations.graph_gateway import graph_gateway
        event_id = graph_gateway.create_calendar_event(user_id, ...)
    """

    def __init__(self, session: requests.Session | None = None, retry_backoff=_RETRY_BACKOFF_SECONDS) -> None:
        self._session: requests.Session | None = session
        self._retry_backoff = tuple(retry_backoff)
        # Token cache: client_id → {"access_token": str, "expires_at": datetime}
        self._token_cache: dict[str, dict] = {}

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    # ── Configuration ────────────────────────────────────────────────────────

    @staticmethod
    def _config() -> dict:
        cfg = current_app.config
        tenant = cfg.get("GRAPH_TENANT_ID")
        return {
            "tenant_id": tenant,
            "client_id": cfg.get("GRAPH_CLIENT_ID"),
            "client_secret": cfg.get("GRAPH_CLIENT_SECRET"),
            "base_url": (cfg.get("GRAPH_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
            "token_url": cfg.get("GRAPH_TOKEN_URL") or DEFAULT_TOKEN_URL.format(tenant=tenant),
        }

    def is_configured(self) -> bool:
        cfg = self._config()
        return bool(cfg["tenant_id"] and cfg["client_id"] and cfg["client_secret"])

    # ── OAuth2 token management ───────────────────────────────────────────────

    def get_token(self) -> str:
        """Return a valid app-only access token (client credentials flow).

        Raises:
            GraphNotConfiguredError: credentials missing.
            requests.HTTPError: token endpoint returned non-2xx.
            GraphGatewayError: token response is missing access_token.
        """
        cfg = self._config()
        if not (cfg["tenant_id"] and cfg["client_id"] and cfg["client_secret"]):
            raise GraphNotConfiguredError("Microsoft Graph credentials are not configured")

        entry = self._token_cache.get(cfg["client_id"])
        # Treat token as expired 60 s early
        if entry and datetime.now(timezone.utc) < entry["expires_at"] - timedelta(seconds=60):
            return entry["access_token"]

        logger.info("Fetching Graph token client_id=%s", cfg["client_id"])
        resp = self.session.post(
            cfg["token_url"],
            data={
                "grant_type": "client_credentials",
                "client_id": cfg["client_id"],
                "client_secret": cfg["client_secret"],
                "scope": GRAPH_SCOPE,
            },
            timeout=_DEFAULT_TIMEOUT,
        )
        resp.raise_for_status()
        body = resp.json()
        access_token = body.get("access_token")
        if not access_token:
            raise GraphGatewayError("Graph token response missing access_token")

        expires_in = int(body.get("expires_in", 3600))
        self._token_cache[cfg["client_id"]] = {
            "access_token": access_token,
            "expires_at": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        }
        return access_token

    def invalidate_token(self) -> None:
        self._token_cache.clear()

    # ── Core request dispatcher ───────────────────────────────────────────────

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict | None = None,
        params: dict | None = None,
        data: bytes | None = None,
        content_type: str | None = None,
        timeout: int = _DEFAULT_TIMEOUT,
    ) -> GatewayResult:
        """Execute an authenticated Graph request with retries.

        Only network errors and 5xx responses are retried; 4xx responses
        come straight back as a failed result.

        Returns:
            GatewayResult — never raises for HTTP failures. Callers check .ok.

        Raises:
            GraphNotConfiguredError: credentials missing.
        """
        url = f"{self._config()['base_url']}{path}"
        token_refreshed = False
        last_error = "Unknown error"
        last_status: int | None = None

        attempt = 0
        while attempt <= _RETRY_MAX:
            try:
                headers = {"Authorization": f"Bearer {self.get_token()}", "Accept": "application/json"}
                kwargs: dict[str, Any] = {"headers": headers, "timeout": timeout}
                if json_body is not None:
                    kwargs["json"] = json_body
                if data is not None:
                    kwargs["data"] = data
                    headers["Content-Type"] = content_type or "application/octet-stream"
                if params:
                    kwargs["params"] = params

                t0 = time.perf_counter()
                resp = self.session.request(method, url, **kwargs)
                duration_ms = int((time.perf_counter() - t0) * 1000)
                last_status = resp.status_code

                if resp.status_code == 401 and not token_refreshed:
                    self.invalidate_token()
                    token_refreshed = True
                    continue

                if resp.ok:
                    parsed = None
                    if "json" in (resp.headers.get("Content-Type") or ""):
                        try:
                            parsed = resp.json()
                        except ValueError:
                            parsed = None
                    return GatewayResult(True, resp.status_code, parsed, None, duration_ms, resp.content)

                last_error = f"HTTP {resp.status_code}: {resp.text[:500]}"
                if resp.status_code < 500:
                    return GatewayResult(False, resp.status_code, None, last_error, duration_ms)
                logger.warning("Graph request failed attempt=%d/%d status=%d %s %s",
                               attempt + 1, _RETRY_MAX + 1, resp.status_code, method, path)

            except requests.Timeout:
                last_error = f"Request timed out after {timeout}s"
                logger.warning("Graph request timed out attempt=%d/%d %s %s",
                               attempt + 1, _RETRY_MAX + 1, method, path)

            except requests.RequestException as exc:
                last_error = str(exc)[:500]
                logger.warning("Graph network error attempt=%d/%d %s %s error=%s",
                               attempt + 1, _RETRY_MAX + 1, method, path, last_error)

            if attempt < _RETRY_MAX:
                time.sleep(self._retry_backoff[min(attempt, len(self._retry_backoff) - 1)])
            attempt += 1

        return GatewayResult(False, last_status, None, last_error, 0)

    # ── Calendar ──────────────────────────────────────────────────────────────

    def create_calendar_event(
        self,
        user_id: str,
        *,
        subject: str,
        body: str,
        start: datetime,
        end: datetime,
        reminder_minutes: int = 60,
    ) -> str:
        """Create an event in the user's default calendar; return its id."""
        payload = {
            "subject": subject,
            "body": {"contentType": "text", "content": body},
            "start": {"dateTime": start.strftime("%Y-%m-%dT%H:%M:%S"), "timeZone": "UTC"},
            "end": {"dateTime": end.strftime("%Y-%m-%dT%H:%M:%S"), "timeZone": "UTC"},
            "isReminderOn": True,
            "reminderMinutesBeforeStart": reminder_minutes,
        }
        result = self.request("POST", f"/users/{quote(user_id)}/events", json_body=payload)
        result.raise_for_error("Create calendar event")
        return (result.data or {}).get("id")

    # ── To Do ─────────────────────────────────────────────────────────────────

    def find_or_create_todo_list(self, user_id: str, display_name: str) -> str:
        result = self.request("GET", f"/users/{quote(user_id)}/todo/lists")
        result.raise_for_error("List To Do lists")
        for todo_list in (result.data or {}).get("value", []):
            if todo_list.get("displayName") == display_name:
                return todo_list["id"]

        created = self.request(
            "POST", f"/users/{quote(user_id)}/todo/lists",
            json_body={"displayName": display_name},
        )
        created.raise_for_error("Create To Do list")
        return (created.data or {}).get("id")

    def create_todo_task(
        self,
        user_id: str,
        list_id: str,
        *,
        title: str,
        body: str | None,
        due: datetime | None,
        importance: str = "normal",
    ) -> str:
        payload: dict[str, Any] = {"title": title, "importance": importance}
        if body:
            payload["body"] = {"contentType": "text", "content": body}
        if due is not None:
            payload["dueDateTime"] = {"dateTime": due.strftime("%Y-%m-%dT%H:%M:%S"), "timeZone": "UTC"}
        result = self.request(
            "POST", f"/users/{quote(user_id)}/todo/lists/{quote(list_id)}/tasks",
            json_body=payload,
        )
        result.raise_for_error("Create To Do task")
        return (result.data or {}).get("id")

    # ── OneDrive ──────────────────────────────────────────────────────────────

    def upload_drive_file(self, user_id: str, path: str, content: bytes, content_type: str | None = None) -> str:
        result = self.request(
            "PUT", f"/users/{quote(user_id)}/drive/root:/{quote(path)}:/content",
            data=content, content_type=content_type,
        )
        result.raise_for_error("Upload drive file")
        return (result.data or {}).get("id")

    def download_drive_file(self, user_id: str, item_id: str) -> bytes | None:
        """Return the file bytes, or None when the item no longer exists."""
        result = self.request("GET", f"/users/{quote(user_id)}/drive/items/{quote(item_id)}/content")
        if result.status_code == 404:
            return None
        result.raise_for_error("Download drive file")
        return result.content

    def delete_drive_file(self, user_id: str, item_id: str) -> None:
        result = self.request("DELETE", f"/users/{quote(user_id)}/drive/items/{quote(item_id)}")
        if result.status_code == 404:
            return
        result.raise_for_error("Delete drive file")


# Module-level singleton
graph_gateway = GraphGateway()
