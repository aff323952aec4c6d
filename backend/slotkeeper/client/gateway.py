"""
Booking API gateway for Python callers (kiosks, other services, integration tests).

Every call is a network round-trip and may fail or be cancelled. Error bodies
({"error": {"code", "message", "details"}}) come back as the same BookingError classes the
server raised. The gateway owns the caller's holder identity for the life of the object.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

import httpx

from slotkeeper.core.clock import as_utc
from slotkeeper.core.errors import BookingError, BookingSystemError, error_from_payload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotOffer:
    """One row of advisory availability. `available` is a snapshot, not a promise."""

    slot_id: str
    start_time: datetime
    end_time: datetime
    total_capacity: int
    available: int
    price: str
    currency: str = "USD"

    def availability_label(self) -> str:
        return f"about {self.available} of {self.total_capacity} left (approximate)"

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> SlotOffer:
        return cls(
            slot_id=row["slot_id"],
            start_time=_parse_ts(row["start_time"]),
            end_time=_parse_ts(row["end_time"]),
            total_capacity=int(row["total_capacity"]),
            available=int(row["available"]),
            price=str(row.get("price", "0")),
            currency=row.get("currency") or "USD",
        )


@dataclass(frozen=True)
class HeldLock:
    lock_id: str
    slot_id: str
    quantity: int
    expires_at: datetime


@dataclass(frozen=True)
class LockCheck:
    is_valid: bool
    reason: str | None
    expires_at: datetime | None


class BookingGateway(Protocol):
    async def get_available_slots(self, event_id: str) -> list[SlotOffer]: ...

    async def create_lock(self, slot_id: str, quantity: int) -> HeldLock: ...

    async def verify_lock(self, lock_id: str) -> LockCheck: ...

    async def release_lock(self, lock_id: str) -> bool: ...

    async def complete_booking(self, lock_id: str, contact: dict[str, Any], quantity: int) -> dict[str, Any]: ...


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    return as_utc(datetime.fromisoformat(value))


class HttpBookingGateway:
    """BookingGateway over the slotkeeper HTTP API using httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str = "",
        *,
        user_id: str | None = None,
        session_token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = client is None
        self.user_id = user_id
        self.session_token = session_token

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        if self.user_id:
            return {"X-User-Id": self.user_id}
        if self.session_token:
            return {"X-Session-Token": self.session_token}
        return {}

    async def _request(self, method: str, path: str, *, json_body: dict[str, Any] | None = None) -> Any:
        try:
            r = await self._client.request(method, path, json=json_body, headers=self._headers())
        except httpx.HTTPError as e:
            raise BookingSystemError(f"Booking service unreachable: {e}") from e
        if r.is_success:
            return r.json() if r.content else {}
        raise self._error_for(r)

    @staticmethod
    def _error_for(r: httpx.Response) -> Exception:
        try:
            body = r.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            return error_from_payload(body["error"])
        if r.status_code == 422:
            # Request-shape validation (e.g. malformed contact email): caller must fix input.
            return ValueError((body or {}).get("detail") if isinstance(body, dict) else r.text[:500])
        return BookingSystemError(f"Booking service error: {r.status_code}", status=r.status_code)

    async def get_available_slots(self, event_id: str) -> list[SlotOffer]:
        data = await self._request("GET", f"/events/{event_id}/slots")
        return [SlotOffer.from_dict(row) for row in data.get("slots", [])]

    async def create_lock(self, slot_id: str, quantity: int) -> HeldLock:
        data = await self._request("POST", "/locks", json_body={"slot_id": slot_id, "quantity": quantity})
        if not self.user_id and data.get("session_token"):
            self.session_token = data["session_token"]
        return HeldLock(
            lock_id=data["lock_id"],
            slot_id=data["slot_id"],
            quantity=int(data["quantity"]),
            expires_at=_parse_ts(data["expires_at"]),
        )

    async def verify_lock(self, lock_id: str) -> LockCheck:
        data = await self._request("GET", f"/locks/{lock_id}")
        return LockCheck(
            is_valid=bool(data.get("is_valid")),
            reason=data.get("reason"),
            expires_at=_parse_ts(data.get("expires_at")),
        )

    async def release_lock(self, lock_id: str) -> bool:
        """Best effort; False on any failure. Server-side expiry reclaims the seats regardless."""
        try:
            data = await self._request("DELETE", f"/locks/{lock_id}")
        except (BookingError, httpx.HTTPError) as e:
            logger.warning("release_lock %s failed: %s", lock_id, e)
            return False
        return bool(data.get("released"))

    async def complete_booking(self, lock_id: str, contact: dict[str, Any], quantity: int) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/bookings",
            json_body={"lock_id": lock_id, "quantity": quantity, "contact": contact},
        )
