"""
backend/enrollment/clients/api.py

Async HTTP client for the enrollment API.

Read calls return None on any transport or HTTP error (logged); the
caller substitutes its defaults. commit_parcels additionally returns the
structured validation errors of a 422 response.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

import httpx

from ..config import settings
from ..services.scheduling import CapacitySnapshot, OpeningSchedule, Parcel

logger = logging.getLogger(__name__)


@dataclass
class CommitResult:
    parcel_ids: list[str] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


class ApiClient:
    """Async client for the pickup location and parcel endpoints."""

    def __init__(self, base_url: str = settings.api_base_url, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs
    ) -> Optional[dict | list]:
        """Basic HTTP request."""
        url = f"{self.base_url}{path}"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                resp = await client.request(method, url, **kwargs)

                if resp.status_code == 204:
                    return None

                if resp.status_code >= 400:
                    logger.error(f"API error: {method} {path} -> {resp.status_code}")
                    return None

                return resp.json()

            except Exception as e:
                logger.error(f"API request failed: {method} {path} -> {e}")
                return None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_pickup_locations(self) -> Optional[list[dict]]:
        """GET /locations → [{id, name}]"""
        return await self._request("GET", "/locations/")

    async def get_schedules(self, location_id: str) -> Optional[list[OpeningSchedule]]:
        """GET /locations/{id}/schedules"""
        path = f"/locations/{location_id}/schedules"
        result = _object(await self._request("GET", path), path)
        if result is None:
            return None
        return [OpeningSchedule.from_payload(s) for s in result.get("schedules", [])]

    async def get_capacity(
        self,
        location_id: str,
        start_date: date,
        end_date: date,
    ) -> Optional[CapacitySnapshot]:
        """GET /locations/{id}/capacity"""
        path = f"/locations/{location_id}/capacity"
        result = await self._request(
            "GET",
            path,
            params={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )
        result = _object(result, path)
        if result is None:
            return None
        return CapacitySnapshot.from_payload(result)

    async def get_slot_duration(self, location_id: str) -> Optional[int]:
        """GET /locations/{id}/slot-duration"""
        path = f"/locations/{location_id}/slot-duration"
        result = _object(await self._request("GET", path), path)
        if result is None:
            return None
        return result.get("slot_duration_minutes")

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def commit_parcels(
        self,
        household_id: str,
        location_id: str,
        parcels: list[Parcel],
    ) -> CommitResult:
        """POST /households/{id}/parcels"""
        payload = {
            "pickup_location_id": location_id,
            "parcels": [
                {
                    "id": p.id,
                    "pickup_date": p.pickup_date.isoformat(),
                    "pickup_earliest_time": p.pickup_earliest_time.isoformat(),
                    "pickup_latest_time": p.pickup_latest_time.isoformat(),
                }
                for p in parcels
            ],
        }
        path = f"/households/{household_id}/parcels"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                resp = await client.post(f"{self.base_url}{path}", json=payload)
            except Exception as e:
                logger.error(f"API request failed: POST {path} -> {e}")
                return CommitResult(errors=[_general_error("SUBMISSION_ERROR", str(e))])

        if resp.status_code == 422:
            body = _json_or_none(resp)
            detail = body.get("detail") if isinstance(body, dict) else None
            if isinstance(detail, dict) and detail.get("errors"):
                return CommitResult(errors=detail["errors"])
            logger.error(f"API error: POST {path} -> 422 without structured errors")
            message = str(detail) if detail else (resp.text or "HTTP 422")
            return CommitResult(errors=[_general_error("VALIDATION_ERROR", message)])

        if resp.status_code >= 400:
            logger.error(f"API error: POST {path} -> {resp.status_code}")
            return CommitResult(
                errors=[_general_error("SUBMISSION_ERROR", f"HTTP {resp.status_code}")]
            )

        body = _json_or_none(resp)
        if not isinstance(body, dict):
            logger.error(f"Unexpected response: POST {path} -> {resp.status_code}")
            return CommitResult(errors=[_general_error("SUBMISSION_ERROR", "Unexpected response")])
        return CommitResult(parcel_ids=body.get("parcel_ids", []))


def _general_error(code: str, message: str) -> dict:
    return {"field": "general", "code": code, "message": message, "details": {}}


def _json_or_none(resp: httpx.Response):
    try:
        return resp.json()
    except ValueError:
        return None


def _object(result, path: str) -> Optional[dict]:
    """Single JSON object expected; anything else is treated as a failed read."""
    if result is None:
        return None
    if not isinstance(result, dict):
        logger.error(f"Unexpected response: GET {path} -> {type(result).__name__}")
        return None
    return result
