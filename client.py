import requests
from typing import Optional

from config import API_KEY_HEADER, load_settings


class RecordsClient:
    """Simple REST client for the personal records API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 10.0,
        api_token: Optional[str] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {API_KEY_HEADER: api_token} if api_token else {}

    @classmethod
    def from_settings(cls, yaml_path: str = "settings.yaml", timeout: float = 10.0) -> "RecordsClient":
        """Build a client from the ``api_base_url`` and ``api_token`` settings."""
        settings = load_settings(yaml_path)
        return cls(settings.api_base_url, timeout=timeout, api_token=settings.api_token)

    def _request(self, method: str, path: str, **params):
        resp = requests.request(
            method,
            f"{self.base_url}{path}",
            params=params or None,
            headers=self.headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def add_record(
        self,
        lift_name: str,
        value: str | float | None = None,
        kind: str = "Weight",
        **params,
    ) -> str:
        data = self._request(
            "POST", "/records", lift_name=lift_name, kind=kind, value=value, **params
        )
        return data["id"]

    def list_records(self, lift_name: Optional[str] = None) -> list[dict]:
        params = {"lift_name": lift_name} if lift_name else {}
        return self._request("GET", "/records", **params)

    def update_record(self, record_id: str, lift_name: str, **params) -> None:
        self._request("PUT", f"/records/{record_id}", lift_name=lift_name, **params)

    def delete_record(self, record_id: str) -> None:
        self._request("DELETE", f"/records/{record_id}")

    def list_lifts(self) -> dict:
        return self._request("GET", "/lifts")

    def add_custom_lift(self, name: str) -> None:
        self._request("POST", "/lifts/custom", name=name)

    def remove_custom_lift(self, name: str) -> None:
        self._request("DELETE", f"/lifts/custom/{name}")

    def stats(self) -> dict:
        return self._request("GET", "/stats")

    def estimate(self, weight: float, reps: int, formula: str = "epley") -> dict:
        return self._request("GET", "/estimate", weight=weight, reps=reps, formula=formula)

    def sync(self) -> dict:
        return self._request("POST", "/sync")
