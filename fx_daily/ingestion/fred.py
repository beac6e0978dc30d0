"""Client + provider adapter for FRED (Federal Reserve Economic Data) series."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from fx_daily.config import DEFAULT_FRED_BASE_URL, FredSettings
from fx_daily.exceptions import ProviderError, ValidationError
from fx_daily.ingestion.models import ObservationMap
from fx_daily.utils.date_range import parse_date
from fx_daily.utils.logger import get_logger

LOGGER = get_logger(__name__)

USER_AGENT = "fx-daily-fred-client/1.0"
FRED_MISSING_VALUE = "."
TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
MAX_ERROR_BODY_LENGTH = 500


class TransientProviderError(ProviderError):
    """Upstream failure worth retrying (connection drop, timeout, 429/5xx)."""


class FredClient:
    """Thin ``requests`` wrapper around the FRED REST endpoints we use."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_FRED_BASE_URL,
        timeout: int = 30,
        session: requests.Session | None = None,
        max_attempts: int = 3,
        wait: wait_base | None = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ValidationError("FRED API key must be configured")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)
        self._retrying = Retrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait or wait_exponential(multiplier=1, min=2, max=30),
            retry=retry_if_exception_type(TransientProviderError),
            before_sleep=before_sleep_log(LOGGER, logging.WARNING),
            reraise=True,
        )
        LOGGER.info("FredClient initialised with base URL: %s", self.base_url)

    @classmethod
    def from_settings(cls, settings: FredSettings, **kwargs: Any) -> "FredClient":
        return cls(
            settings.require_api_key(),
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
            **kwargs,
        )

    def get_series_observations(
        self, series_id: str, start_date: date | None = None
    ) -> list[dict[str, Any]]:
        """Return the raw ``observations`` array for ``series_id``."""

        params = self._params(series_id)
        if start_date is not None:
            params["observation_start"] = start_date.isoformat()
        LOGGER.info("Requesting FRED series: %s startDate: %s", series_id, start_date)
        payload = self._retrying(self._get_json, "/series/observations", params)
        observations = payload.get("observations") if isinstance(payload, dict) else None
        if not isinstance(observations, list):
            raise ProviderError(f"FRED response for {series_id} did not include observations")
        LOGGER.debug("Fetched %s raw observations for %s", len(observations), series_id)
        return observations

    def series_exists(self, series_id: str) -> bool:
        """Return True when FRED knows ``series_id``; False on HTTP 400/404."""

        LOGGER.debug("Checking if FRED series exists: %s", series_id)
        response = self._retrying(self._request, "/series", self._params(series_id))
        if response.status_code == 200:
            return True
        if response.status_code in {400, 404}:
            LOGGER.debug("FRED series does not exist: %s (HTTP %s)", series_id, response.status_code)
            return False
        raise ProviderError(self._error_message(response), status_code=response.status_code)

    def _params(self, series_id: str) -> dict[str, str]:
        return {"series_id": series_id, "api_key": self.api_key, "file_type": "json"}

    def _request(self, path: str, params: dict[str, str]) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(
                url,
                params=params,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientProviderError(f"FRED request to {path} failed: {exc}") from exc
        except requests.RequestException as exc:
            raise ProviderError(f"FRED request to {path} failed: {exc}") from exc
        if response.status_code in TRANSIENT_STATUS_CODES:
            raise TransientProviderError(
                self._error_message(response), status_code=response.status_code
            )
        return response

    def _get_json(self, path: str, params: dict[str, str]) -> Any:
        response = self._request(path, params)
        if response.status_code >= 400:
            raise ProviderError(self._error_message(response), status_code=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"FRED returned a non-JSON body for {path}") from exc

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        body = response.text or ""
        message = body or "No response body"
        error_code: object = None
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("error_message"):
            message = str(data["error_message"])
            error_code = data.get("error_code")
        elif len(message) > MAX_ERROR_BODY_LENGTH:
            message = message[:MAX_ERROR_BODY_LENGTH] + "... (truncated)"
        LOGGER.warning(
            "FRED API error: HTTP %s - Error Code: %s - Message: %s",
            response.status_code,
            error_code,
            message,
        )
        return f"FRED API error (HTTP {response.status_code}): {message} code: {error_code}"


class FredExchangeRateProvider:
    """:class:`~fx_daily.ingestion.strategy.ExchangeRateProvider` backed by FRED."""

    def __init__(self, client: FredClient) -> None:
        self.client = client

    def fetch_observations(
        self, provider_series_id: str, start_date: date | None = None
    ) -> ObservationMap:
        observations = self.client.get_series_observations(provider_series_id, start_date)
        rates: ObservationMap = {}
        for observation in observations:
            value = observation.get("value")
            if value is None or str(value).strip() in {"", FRED_MISSING_VALUE}:
                continue
            try:
                rate = Decimal(str(value).strip())
                rate_date = parse_date(str(observation.get("date")))
            except (InvalidOperation, ValidationError) as exc:
                raise ProviderError(
                    f"Malformed FRED observation for {provider_series_id}: {observation!r}"
                ) from exc
            rates[rate_date] = rate
        LOGGER.info(
            "Fetched %s usable observations for %s (%s skipped as missing)",
            len(rates),
            provider_series_id,
            len(observations) - len(rates),
        )
        return rates

    def series_exists(self, provider_series_id: str) -> bool:
        return self.client.series_exists(provider_series_id)


__all__ = [
    "FredClient",
    "FredExchangeRateProvider",
    "TransientProviderError",
    "FRED_MISSING_VALUE",
    "USER_AGENT",
]
