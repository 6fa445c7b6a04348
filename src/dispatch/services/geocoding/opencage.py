"""HTTP client for the OpenCage forward-geocoding API."""

from __future__ import annotations

import logging
import time

import httpx

from ...config import settings
from ...models.domain import GeoPoint
from .base import GeocodeFailure

logger = logging.getLogger(__name__)


class OpenCageGeocoder:
    """Resolve postal codes through ``/geocode/v1/json``.

    Timeouts, network errors and 5xx/429 responses are retried with backoff.
    Anything that still fails, and any query without results, surfaces as
    ``GeocodeFailure``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        country_code: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.geocoder_api_key
        if not self.api_key:
            raise ValueError("Geocoder API key is not configured.")
        self.base_url = (base_url or settings.geocoder_base_url).rstrip("/")
        self.country_code = country_code or settings.geocoder_country_code
        self.timeout = timeout if timeout is not None else settings.geocoder_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.geocoder_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.geocoder_backoff_seconds
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)),
            transport=self._transport,
        )

    def _request(self, client: httpx.Client, postal_code: str) -> dict:
        params = {
            "q": f"{postal_code},{self.country_code}" if self.country_code else postal_code,
            "key": self.api_key,
            "limit": 1,
            "no_annotations": 1,
        }
        url = f"{self.base_url}/geocode/v1/json"

        attempt = 0
        while True:
            try:
                response = client.get(url, params=params)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                code = e.response.status_code
                # Bad key, quota exhausted or malformed query: retrying will not help.
                if code < 500 and code != 429:
                    raise GeocodeFailure(postal_code, f"HTTP {code}") from e
                attempt += 1
                if attempt > self.max_retries:
                    logger.warning(f"Geocoder returned HTTP {code} for '{postal_code}' after {attempt} attempts")
                    raise GeocodeFailure(postal_code, f"HTTP {code}") from e
                time.sleep(self.backoff_seconds * attempt)
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                attempt += 1
                if attempt > self.max_retries:
                    logger.warning(f"Geocoder unreachable for '{postal_code}' after {attempt} attempts: {e}")
                    raise GeocodeFailure(postal_code, f"geocoder unreachable: {e}") from e
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.debug(f"Geocoder request failed, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                time.sleep(wait_time)
            except ValueError as e:
                raise GeocodeFailure(postal_code, "invalid JSON response") from e

    def lookup(self, postal_code: str) -> GeoPoint:
        client = self._get_client()
        try:
            data = self._request(client, postal_code)
        finally:
            client.close()

        results = data.get("results") or []
        if not results:
            raise GeocodeFailure(postal_code, "no results")
        geometry = results[0].get("geometry") or {}
        try:
            return GeoPoint(float(geometry["lat"]), float(geometry["lng"]))
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodeFailure(postal_code, "result without coordinates") from e


def check_health(geocoder: OpenCageGeocoder | None = None, probe: str = "110001") -> bool:
    """Check that the geocoder answers a known postal code."""
    try:
        client = geocoder or OpenCageGeocoder(max_retries=0)
        client.lookup(probe)
        return True
    except (GeocodeFailure, ValueError):
        return False
