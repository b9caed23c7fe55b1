"""
Guest repository over PostgREST RPC functions (Supabase)
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from aiohttp import ClientError
from pydantic import ValidationError as SchemaError

from app.core.config import settings
from app.core.errors import AuthError, NetworkError, ParseError, ServerError
from app.schemas.guest import Guest, GuestGroup
from app.services.repositories import GuestRepository, _group_from_fields, _guest_from_fields, _location_values

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"


class RpcGuestRepository(GuestRepository):
    """Calls the invitation-code-checked RPC functions of the remote database."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.SUPABASE_PUBLISHABLE_KEY
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.REMOTE_TIMEOUT_SECONDS)
        self._session = session

    async def get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def call(self, function: str, params: Dict[str, Any]) -> Any:
        """POST ``params`` to ``/rpc/<function>`` and return the decoded body"""
        url = f"{self.base_url}{REST_PATH}/rpc/{function}"
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        session = await self.get_session()
        try:
            async with session.post(url, headers=headers, json=params) as response:
                text = await response.text()
                status = response.status
        except asyncio.TimeoutError as e:
            raise NetworkError(f"{function} timed out") from e
        except ClientError as e:
            raise NetworkError(f"{function} failed: {e}") from e

        if status in (401, 403):
            raise AuthError(f"{function} rejected the invitation code")
        if status >= 400:
            logger.error(f"RPC {function} failed: {status} - {text}")
            raise ServerError(f"Status: {status}, Body: {text}")
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"{function} returned invalid JSON: {e}") from e

    @staticmethod
    def _single(payload: Any) -> Optional[Dict[str, Any]]:
        """RPC functions return either one row or a one-element array"""
        if isinstance(payload, list):
            return payload[0] if payload else None
        return payload

    def _to_guest(self, row: Any) -> Guest:
        if not isinstance(row, dict) or "id" not in row:
            raise ParseError(f"Unexpected guest payload: {row!r}")
        try:
            return _guest_from_fields(row["id"], row.get("guest_group_id", ""), row)
        except SchemaError as e:
            raise ParseError(str(e)) from e

    async def authenticate(self, invitation_code: str) -> Optional[GuestGroup]:
        row = self._single(await self.call("authenticate_guest_group", {"code": invitation_code}))
        if not row:
            return None
        try:
            return _group_from_fields(row["id"], invitation_code, row)
        except (KeyError, SchemaError) as e:
            raise ParseError(str(e)) from e

    async def list_guests(self, group_id: str, code: str) -> List[Guest]:
        rows = await self.call("get_guests_for_group", {
            "p_guest_group_id": group_id,
            "p_invitation_code": code,
        })
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise ParseError(f"Expected a guest list, got {type(rows).__name__}")
        return [self._to_guest(row) for row in rows]

    async def create_guest(self, group_id, code, name, locations, dietary, age_category) -> Guest:
        row = await self.call("create_guest_for_group", {
            "p_guest_group_id": group_id,
            "p_invitation_code": code,
            "p_name": name,
            "p_attending_locations": _location_values(locations),
            "p_dietary_preferences": dietary.model_dump(),
            "p_age_category": getattr(age_category, "value", age_category),
        })
        return self._to_guest(self._single(row))

    async def update_guest(self, guest_id, group_id, code, name, locations, dietary, age_category) -> Guest:
        row = await self.call("update_guest_for_group", {
            "p_guest_id": guest_id,
            "p_guest_group_id": group_id,
            "p_invitation_code": code,
            "p_name": name,
            "p_attending_locations": _location_values(locations),
            "p_dietary_preferences": dietary.model_dump(),
            "p_age_category": getattr(age_category, "value", age_category),
        })
        return self._to_guest(self._single(row))

    async def delete_guest(self, guest_id: str, group_id: str, code: str) -> None:
        await self.call("delete_guest_for_group", {
            "p_guest_id": guest_id,
            "p_guest_group_id": group_id,
            "p_invitation_code": code,
        })

    async def update_group_party_size(self, group_id: str, code: str, new_size: int) -> None:
        await self.call("update_guest_group_party_size", {
            "p_guest_group_id": group_id,
            "p_invitation_code": code,
            "p_new_party_size": new_size,
        })

    async def update_group_notes(self, group_id: str, code: str, notes: str) -> None:
        await self.call("update_guest_group_notes", {
            "p_guest_group_id": group_id,
            "p_invitation_code": code,
            "p_additional_notes": notes,
        })
