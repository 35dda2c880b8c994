"""HTTP client for the display pairing endpoints, as used by the kiosk."""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class PairingClientError(Exception):
    """Any failed pairing API call."""


class DeviceNotFound(PairingClientError):
    """The server has no record of this device."""


class TransientNetworkError(PairingClientError):
    """Timeout, connection failure or server error; retry on the next tick."""


class PairingClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        http: Optional[httpx.Client] = None,
    ):
        self._base = base_url.rstrip("/")
        self._http = http or httpx.Client(timeout=timeout)
        self._timeout = timeout

    def close(self):
        self._http.close()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self._base}{path}"
        try:
            response = self._http.request(method, url, timeout=self._timeout, **kwargs)
        except httpx.HTTPError as e:
            raise TransientNetworkError(f"{method} {path}: {e}") from e

        if response.status_code == 404:
            raise DeviceNotFound(f"{method} {path}: not found")
        if response.status_code >= 500:
            raise TransientNetworkError(f"{method} {path}: HTTP {response.status_code}")
        if response.status_code >= 400:
            raise PairingClientError(f"{method} {path}: HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise TransientNetworkError(f"{method} {path}: invalid JSON") from e

    def init(self, device_id: Optional[str] = None) -> dict:
        """Returns ``{"deviceId", "code"}``."""
        body = {"deviceId": device_id} if device_id else {}
        return self._request("POST", "/displays/pairing/init", json=body)

    def status(self, device_id: str) -> dict:
        return self._request("GET", f"/displays/pairing/status/{device_id}")

    def disconnect(self, device_id: str) -> dict:
        return self._request("POST", f"/displays/pairing/{device_id}/disconnect")

    def reset(self, device_id: str) -> dict:
        """Returns ``{"deviceId", "code"}``."""
        return self._request("POST", f"/displays/pairing/{device_id}/reset")
