"""HTTP remote store.

A thin REST client for a note document service. Live snapshots are produced
by a polling task per subscription; the task keeps polling through outages,
so reconnection is owned by the store and never by the sync service.

Expected routes
---------------
POST   {notes_path}                 – create, returns {"id": "..."}
DELETE {notes_path}/{id}            – delete
PATCH  {notes_path}/{id}            – partial update ({"completed": true})
GET    {notes_path}?ownerId={uid}   – list the owner's notes

All endpoints accept/return JSON with camelCase keys. The service
authenticates callers by the ``Authorization: Bearer <token>`` header.

Configuration comes from config/settings/remote.yaml; the token from
REMOTE_API_TOKEN in config/.env. Direct kwargs take precedence.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from modules.spark.core.exceptions import (
    ApplicationError,
    ChannelDisconnectedError,
    ExternalServiceError,
    NotFoundError,
)
from modules.spark.core.logging import get_logger, log_with_source
from modules.spark.remote.base import ErrorCallback, SnapshotCallback, sort_newest_first
from modules.spark.schemas.note import RemoteNoteRecord

logger = get_logger(__name__)


@dataclass(eq=False)
class PollingRegistration:
    """Registration handle wrapping a subscription's polling task."""

    owner_id: str
    active: bool = True
    task: asyncio.Task | None = field(default=None, repr=False)

    def remove(self) -> None:
        self.active = False
        if self.task is not None and not self.task.done():
            self.task.cancel()


class HttpRemoteStore:
    """RemoteStore backed by a JSON REST service."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        api_token: str | None = None,
        notes_path: str | None = None,
        timeout: float | None = None,
        poll_interval: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Service base URL. If None, reads remote.yaml.
            api_token: Bearer token. If None, reads REMOTE_API_TOKEN.
            notes_path: Collection path. If None, reads remote.yaml.
            timeout: Request timeout in seconds. If None, reads remote.yaml.
            poll_interval: Seconds between snapshot polls. If None, reads remote.yaml.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        if None in (base_url, notes_path, timeout, poll_interval):
            from modules.spark.core.config import get_app_config, get_remote_base_url

            remote = get_app_config().remote
            default_url, default_timeout = get_remote_base_url()
            base_url = base_url or default_url
            notes_path = notes_path or remote.notes_path
            timeout = timeout if timeout is not None else default_timeout
            poll_interval = poll_interval if poll_interval is not None else remote.poll_interval_seconds

        if api_token is None:
            from modules.spark.core.config import get_settings

            api_token = get_settings().remote_api_token

        self.base_url = base_url.rstrip("/")
        self.notes_path = "/" + notes_path.strip("/")
        self.timeout = float(timeout)
        self.poll_interval = float(poll_interval)
        self._api_token = api_token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._registrations: list[PollingRegistration] = []

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self._api_token:
                headers["Authorization"] = f"Bearer {self._api_token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Stop all polling tasks and close the HTTP client."""
        for registration in list(self._registrations):
            registration.remove()
        self._registrations.clear()
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Make an HTTP request and translate failures.

        Raises:
            ConnectionError: On transport errors and 5xx responses (retryable)
            NotFoundError: On 404
            ExternalServiceError: On any other non-success status
        """
        client = await self._get_client()
        log_with_source(logger, "remote", "debug", "Remote request", method=method, path=path)

        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            log_with_source(
                logger, "remote", "warning", "Remote request failed",
                method=method, path=path, error=str(e),
            )
            raise ConnectionError(f"{method} {path} failed: {e}") from e

        log_with_source(
            logger, "remote", "debug", "Remote response",
            method=method, path=path, status_code=response.status_code,
        )

        if response.status_code == 404:
            raise NotFoundError(f"{path} not found")
        if response.status_code >= 500:
            raise ConnectionError(f"{method} {path} returned {response.status_code}")
        if response.status_code >= 400:
            raise ExternalServiceError(f"{method} {path} returned {response.status_code}")
        return response

    # ------------------------------------------------------------- mutations

    async def create(
        self,
        owner_id: str,
        content: str,
        is_task: bool,
        categories: list[str],
    ) -> str:
        response = await self._request(
            "POST",
            self.notes_path,
            json={
                "ownerId": owner_id,
                "content": content,
                "isTask": is_task,
                "categories": list(categories),
            },
        )
        body = self._json(response)
        remote_id = body.get("id") if isinstance(body, dict) else None
        if not remote_id:
            raise ExternalServiceError("Create response did not include an id")
        return str(remote_id)

    async def delete(self, remote_id: str) -> None:
        await self._request("DELETE", f"{self.notes_path}/{remote_id}")

    async def set_completed(self, remote_id: str, completed: bool) -> None:
        await self._request("PATCH", f"{self.notes_path}/{remote_id}", json={"completed": completed})

    async def fetch(self, owner_id: str) -> list[RemoteNoteRecord]:
        """Fetch the owner's records, newest first."""
        response = await self._request("GET", self.notes_path, params={"ownerId": owner_id})
        body = self._json(response)
        rows = body.get("notes", []) if isinstance(body, dict) else body
        if not isinstance(rows, list):
            raise ExternalServiceError("Malformed note listing: expected a list of notes")
        try:
            records = [RemoteNoteRecord.model_validate(row) for row in rows]
        except PydanticValidationError as e:
            raise ExternalServiceError(f"Malformed note listing: {e.error_count()} errors") from e
        return sort_newest_first(records)

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(
                f"Remote store returned a non-JSON body (HTTP {response.status_code})"
            ) from e

    # ------------------------------------------------------------------ feed

    def subscribe(
        self,
        owner_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> PollingRegistration:
        """Start polling. Must be called from a running event loop."""
        registration = PollingRegistration(owner_id=owner_id)
        registration.task = asyncio.get_running_loop().create_task(
            self._poll(registration, on_snapshot, on_error),
            name=f"poll-notes-{owner_id}",
        )
        registration.task.add_done_callback(lambda _task: self._forget(registration))
        self._registrations.append(registration)
        return registration

    def _forget(self, registration: PollingRegistration) -> None:
        if registration in self._registrations:
            self._registrations.remove(registration)

    async def _poll(
        self,
        registration: PollingRegistration,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None,
    ) -> None:
        last: list[RemoteNoteRecord] | None = None
        disconnected = False

        while registration.active:
            try:
                records = await self.fetch(registration.owner_id)
            except (ConnectionError, ApplicationError) as exc:
                if not disconnected:
                    disconnected = True
                    log_with_source(
                        logger, "remote", "warning", "Snapshot poll failed",
                        owner_id=registration.owner_id, error=str(exc),
                    )
                    if on_error is not None:
                        on_error(ChannelDisconnectedError(str(exc)))
            else:
                if disconnected:
                    disconnected = False
                    log_with_source(logger, "remote", "info", "Snapshot poll recovered", owner_id=registration.owner_id)
                if registration.active and records != last:
                    last = records
                    try:
                        on_snapshot(records)
                    except Exception as exc:
                        log_with_source(
                            logger, "remote", "error", "Snapshot consumer failed",
                            owner_id=registration.owner_id, error=str(exc),
                        )

            await asyncio.sleep(self.poll_interval)
