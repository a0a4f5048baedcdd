from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

import requests


class StoreError(Exception):
    pass


class StoreFetchError(StoreError):
    pass


@dataclass
class StoreClient:
    project_id: str
    api_key: str
    base_url: str = "https://api.wexa.ai"
    timeout_s: int = 30

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.api_key, "Content-Type": "application/json"}

    def fetch_page(self, table_id: str, page: int, limit: int, query: str = "", sort_key: str = "_id") -> Dict[str, Any]:
        params = {"page": page, "limit": limit, "query": query, "sort": 1, "sort_key": sort_key}
        try:
            resp = requests.get(
                f"{self.base_url}/storage/{self.project_id}/{table_id}",
                headers=self._headers(),
                params=params,
                timeout=self.timeout_s,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise StoreError(f"page {page} of table {table_id} failed: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"page {page} of table {table_id}: unexpected body type {type(data).__name__}")
        return data

    def fetch_table(self, table_id: str) -> Dict[str, Any]:
        """
        Unpaginated read, used for small lookup tables.
        """
        try:
            resp = requests.get(
                f"{self.base_url}/storage/{self.project_id}/{table_id}",
                headers=self._headers(),
                timeout=self.timeout_s,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise StoreError(f"table {table_id} failed: {e}") from e
        return data if isinstance(data, dict) else {}

    def execute_flow(self, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = requests.post(
                f"{self.base_url}/execute_flow",
                headers=self._headers(),
                params={"projectID": self.project_id},
                json=body,
                timeout=self.timeout_s,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise StoreError(f"execute_flow failed: {e}") from e
        if "application/json" in resp.headers.get("content-type", ""):
            try:
                return {"status": resp.status_code, "data": resp.json()}
            except ValueError:
                pass
        return {"status": resp.status_code, "data": {"text": resp.text}}


def page_records(body: Dict[str, Any]) -> List[Any]:
    records = body.get("records")
    return records if isinstance(records, list) else []


def reported_total(body: Dict[str, Any], fallback: int) -> int:
    """
    The store reports its total under different keys depending on the endpoint.
    """
    for key in ("total_count", "totalCount"):
        value = body.get(key)
        if value is None or value == "":
            continue
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            continue
    return fallback
