"""Roundtrip distance lookup for job mileage"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol

import httpx

from config import (
    DISTANCE_MATRIX_URL,
    ESTIMATED_ROUNDTRIP_MILES,
    GOOGLE_MAPS_API_KEY,
    METERS_TO_MILES,
    MILEAGE_TIMEOUT_SECONDS,
)
from .exceptions import MileageResolutionError
from .models import MileageResult
from .money import round_miles

logger = logging.getLogger(__name__)


class MileageProvider(Protocol):
    """Anything that can turn two addresses into a roundtrip distance."""

    async def roundtrip(self, origin_address: str, destination_address: str) -> MileageResult:
        ...


def estimate_mileage(now: Optional[datetime] = None) -> MileageResult:
    """Fallback used when the distance lookup is unavailable, fails, or times out."""
    return MileageResult(
        miles=Decimal(ESTIMATED_ROUNDTRIP_MILES),
        route_details={
            'method': 'estimated',
            'calculated_at': (now or datetime.now()).isoformat(),
        },
    )


class GoogleDistanceMatrixProvider:
    """
    Roundtrip driving distance from the Google Distance Matrix API.

    The API returns the one-way distance in meters; the roundtrip is twice
    that, converted to miles and rounded to 2 decimals.
    """

    def __init__(self, api_key: str = GOOGLE_MAPS_API_KEY,
                 client: Optional[httpx.AsyncClient] = None,
                 timeout: float = MILEAGE_TIMEOUT_SECONDS):
        self.api_key = api_key
        self._client = client
        self._timeout = timeout

    async def _fetch(self, params: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(DISTANCE_MATRIX_URL, params=params)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(DISTANCE_MATRIX_URL, params=params)

    async def roundtrip(self, origin_address: str, destination_address: str) -> MileageResult:
        if not self.api_key:
            raise MileageResolutionError("Google Maps API key is not configured")

        params = {
            'origins': origin_address,
            'destinations': destination_address,
            'units': 'imperial',
            'mode': 'driving',
            'key': self.api_key,
        }

        try:
            response = await self._fetch(params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise MileageResolutionError(f"Distance lookup failed: {e}") from e
        except ValueError as e:
            raise MileageResolutionError("Distance lookup returned invalid JSON") from e

        status = payload.get('status')
        if status != 'OK':
            raise MileageResolutionError(f"Google Maps API error: {status}")

        try:
            element = payload['rows'][0]['elements'][0]
        except (KeyError, IndexError, TypeError) as e:
            raise MileageResolutionError("Distance lookup returned no route") from e

        if element.get('status') != 'OK':
            raise MileageResolutionError("Route calculation failed")

        try:
            distance = element['distance']
            meters = Decimal(str(distance['value']))
        except (KeyError, TypeError, ArithmeticError) as e:
            raise MileageResolutionError("Distance lookup returned no distance") from e

        one_way_miles = meters * Decimal(str(METERS_TO_MILES))
        return MileageResult(
            miles=round_miles(one_way_miles * 2),
            route_details={
                'method': 'google-distance-matrix',
                'one_way_distance': distance.get('text', ''),
                'one_way_duration': element.get('duration', {}).get('text', ''),
                'calculated_at': datetime.now().isoformat(),
            },
        )
