"""REST client for the SyntropyStack platform API.

Thin wrapper over a requests Session: one method per platform endpoint the
provider uses, JSON in and out, every failure raised as ApiError. Nothing is
retried here; callers surface the error to the user.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from syntropy.config import ProviderConfig
from syntropy.exceptions import ApiError
from syntropy.models import SubnetChange

logger = logging.getLogger(__name__)

API_PREFIX = "/api/platform/network"
USER_AGENT = "syntropystack-provider"


class SyntropyClient:
    """Platform API client bound to one ProviderConfig."""

    def __init__(self, config: ProviderConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.base_url = config.api_url.rstrip("/") + API_PREFIX
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {config.access_token}",
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            }
        )

    def close(self) -> None:
        self.session.close()

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        url = self.base_url + path
        logger.debug(f"{method} {url} params={params}")
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=json,
                timeout=timeout or self.config.timeout,
            )
            resp.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            body = e.response.text if e.response is not None else None
            raise ApiError(
                f"{method} {path} failed: HTTP {status}: {(body or '')[:200]}",
                status_code=status,
                body=body,
            ) from e
        except requests.Timeout as e:
            raise ApiError(f"{method} {path} timed out: {e}") from e
        except requests.RequestException as e:
            raise ApiError(f"{method} {path} failed: {e}") from e

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(
                f"{method} {path} returned invalid JSON",
                status_code=resp.status_code,
                body=resp.text,
            ) from e

    @staticmethod
    def _data(payload: Dict[str, Any]) -> Any:
        return payload.get("data")

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    def search_agents(
        self,
        agent_filter: Optional[Dict[str, Any]] = None,
        search: Optional[str] = None,
        skip: Optional[int] = None,
        take: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        body: Dict[str, Any] = {"filter": agent_filter or {}}
        if search is not None:
            body["search"] = search
        if skip is not None:
            body["skip"] = skip
        if take is not None:
            body["take"] = take
        return self._data(self._request("POST", "/agents/search", json=body)) or []

    def get_agents(self, agent_ids: Iterable[int]) -> List[Dict[str, Any]]:
        params = {"filter": ",".join(str(i) for i in agent_ids)}
        return self._data(self._request("GET", "/agents", params=params)) or []

    def create_agent(
        self,
        name: str,
        token: str,
        provider_id: Optional[int] = None,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "agent_name": name,
            "agent_token": token,
            "agent_tags": list(tags or []),
        }
        if provider_id is not None:
            body["agent_provider_id"] = provider_id
        return self._data(self._request("POST", "/agents", json=body)) or {}

    def update_agent(
        self,
        agent_id: int,
        name: Optional[str] = None,
        provider_id: Optional[int] = None,
        tags: Optional[List[str]] = None,
    ) -> None:
        body: Dict[str, Any] = {"agent_tags": list(tags or [])}
        if name is not None:
            body["agent_name"] = name
        if provider_id is not None:
            body["agent_provider_id"] = provider_id
        self._request("PATCH", f"/agents/{agent_id}", json=body)

    def remove_agents(self, agent_ids: Iterable[int]) -> None:
        self._request("POST", "/agents/remove", json={"agent_ids": list(agent_ids)})

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def create_p2p_connections(
        self, agent_pairs: List[Dict[str, int]], sdn_enabled: bool = False
    ) -> List[Dict[str, Any]]:
        body = {"agent_pairs": agent_pairs, "sdn_enabled": sdn_enabled}
        return self._data(self._request("POST", "/connections/p2p", json=body)) or []

    def create_mesh(self, agent_ids: Iterable[int], sdn_enabled: bool = False) -> None:
        body = {
            "agent_ids": [{"agent_id": i} for i in agent_ids],
            "sdn_enabled": sdn_enabled,
        }
        self._request("POST", "/connections/mesh", json=body)

    def search_connections(self, agent_pairs: List[Dict[str, int]]) -> List[Dict[str, Any]]:
        body = {"filter": {"agent_pair": agent_pairs}}
        return self._data(self._request("POST", "/connections/search", json=body)) or []

    def list_connections(self, take: int = 1000) -> List[Dict[str, Any]]:
        return self._data(self._request("GET", "/connections", params={"take": take})) or []

    def update_connections(self, changes: List[Dict[str, Any]]) -> None:
        self._request("PATCH", "/connections", json={"changes": changes})

    def remove_connections(self, connection_group_ids: Iterable[int]) -> None:
        body = {"agent_connection_group_ids": list(connection_group_ids)}
        self._request("POST", "/connections/remove", json=body)

    # ------------------------------------------------------------------
    # Connection services
    # ------------------------------------------------------------------

    def get_connection_services(self, connection_group_ids: Iterable[int]) -> List[Dict[str, Any]]:
        params = {"filter": ",".join(str(i) for i in connection_group_ids)}
        return self._data(self._request("GET", "/connections/services", params=params)) or []

    def update_connection_services(
        self, connection_group_id: int, changes: Iterable[SubnetChange]
    ) -> None:
        body = {
            "agent_connection_group_id": connection_group_id,
            "changes": [c.to_api() for c in changes],
        }
        self._request("PATCH", "/connections/services", json=body)
