"""Data models for SyntropyStack.

Dataclasses for the platform API objects the provider reads and the flat
records it writes into state. `from_api` constructors accept the JSON
dictionaries returned by the platform; `to_state` produces the
attribute dictionaries stored for resources and data sources.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from syntropy.exceptions import SchemaValidationError


def to_int(value: Any) -> int:
    """Normalise an identifier to int (configuration may hold floats or strings)."""
    if isinstance(value, bool):
        raise SchemaValidationError("Expected a numeric ID", context={"value": value})
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise SchemaValidationError(
            "Expected a numeric ID", context={"value": value}
        ) from e
    if not number.is_integer():
        raise SchemaValidationError("Expected an integer ID", context={"value": value})
    return int(number)


def to_int_list(values: Optional[List[Any]]) -> List[int]:
    return [to_int(v) for v in values or []]


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, accepting a trailing 'Z'."""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError) as e:
        raise SchemaValidationError(
            "Invalid ISO 8601 date time", context={"value": value}
        ) from e


# --------------------------------------------------------------------------
# Agents
# --------------------------------------------------------------------------


@dataclass
class AgentTag:
    id: int
    name: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AgentTag":
        return cls(id=int(data["agent_tag_id"]), name=data.get("agent_tag_name", ""))

    def to_state(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass
class AgentProvider:
    id: int
    name: str

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> Optional["AgentProvider"]:
        if not data:
            return None
        return cls(
            id=int(data.get("agent_provider_id", 0)),
            name=data.get("agent_provider_name", ""),
        )

    def to_state(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass
class Agent:
    """A registered network endpoint on the platform."""

    id: int
    name: str
    public_ipv4: str = ""
    status: str = ""
    is_online: bool = False
    version: str = ""
    location_country: str = ""
    location_city: str = ""
    device_id: str = ""
    is_virtual: bool = False
    type: str = ""
    modified_at: str = ""
    tags: List[AgentTag] = field(default_factory=list)
    provider: Optional[AgentProvider] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Agent":
        # nullable fields come back as null, not missing
        return cls(
            id=int(data["agent_id"]),
            name=data.get("agent_name") or "",
            public_ipv4=data.get("agent_public_ipv4") or "",
            status=data.get("agent_status") or "",
            is_online=bool(data.get("agent_is_online")),
            version=data.get("agent_version") or "",
            location_country=data.get("agent_location_country") or "",
            location_city=data.get("agent_location_city") or "",
            device_id=data.get("agent_device_id") or "",
            is_virtual=bool(data.get("agent_is_virtual")),
            type=data.get("agent_type") or "",
            modified_at=data.get("agent_modified_at") or "",
            tags=[AgentTag.from_api(t) for t in data.get("agent_tags") or []],
            provider=AgentProvider.from_api(data.get("agent_provider")),
        )

    def to_state(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "public_ipv4": self.public_ipv4,
            "status": self.status,
            "is_online": self.is_online,
            "version": self.version,
            "location_country": self.location_country,
            "location_city": self.location_city,
            "device_id": self.device_id,
            "is_virtual": self.is_virtual,
            "type": self.type,
            "modified_at": self.modified_at,
            "tags": [t.to_state() for t in self.tags],
            "provider": self.provider.to_state() if self.provider else None,
        }


@dataclass
class AgentFilter:
    """Search filter for agents, as configured on the agent search data source."""

    id: Optional[List[int]] = None
    name: Optional[str] = None
    tag_id: Optional[List[int]] = None
    provider_id: Optional[List[int]] = None
    type: Optional[List[str]] = None
    version: Optional[List[str]] = None
    tag_name: Optional[List[str]] = None
    status: Optional[List[str]] = None
    location_country: Optional[List[str]] = None
    modified_at_from: Optional[str] = None
    modified_at_to: Optional[str] = None

    @classmethod
    def from_state(cls, data: Optional[Dict[str, Any]]) -> Optional["AgentFilter"]:
        if not data:
            return None
        return cls(
            id=to_int_list(data["id"]) if data.get("id") is not None else None,
            name=data.get("name"),
            tag_id=to_int_list(data["tag_id"]) if data.get("tag_id") is not None else None,
            provider_id=(
                to_int_list(data["provider_id"])
                if data.get("provider_id") is not None
                else None
            ),
            type=data.get("type"),
            version=data.get("version"),
            tag_name=data.get("tag_name"),
            status=data.get("status"),
            location_country=data.get("location_country"),
            modified_at_from=data.get("modified_at_from"),
            modified_at_to=data.get("modified_at_to"),
        )

    def to_api(self) -> Dict[str, Any]:
        """Convert to the API filter body, omitting unset fields.

        Raises:
            SchemaValidationError: If a modified_at bound is not a valid date
        """
        out: Dict[str, Any] = {}
        mapping = {
            "agent_id": self.id,
            "agent_name": self.name,
            "agent_tag_id": self.tag_id,
            "agent_provider_id": self.provider_id,
            "agent_type": self.type,
            "agent_version": self.version,
            "agent_tag_name": self.tag_name,
            "agent_status": self.status,
            "agent_location_country": self.location_country,
        }
        for key, value in mapping.items():
            if value is not None:
                out[key] = value
        if self.modified_at_from is not None:
            out["agent_modified_at_from"] = parse_timestamp(self.modified_at_from).isoformat()
        if self.modified_at_to is not None:
            out["agent_modified_at_to"] = parse_timestamp(self.modified_at_to).isoformat()
        return out


# --------------------------------------------------------------------------
# Connections and services
# --------------------------------------------------------------------------


@dataclass
class ConnectionServiceData:
    """One flattened (service, subnet, enabled) record of a connection."""

    id: int
    name: str
    ip: str
    type: str
    enabled: bool
    agent_id: int
    service_id: int = 0
    connection_id: int = 0

    def to_state(self) -> Dict[str, Any]:
        # connection_id is bookkeeping only
        return {
            "id": self.id,
            "service_id": self.service_id,
            "name": self.name,
            "ip": self.ip,
            "type": self.type,
            "enabled": self.enabled,
            "agent_id": self.agent_id,
        }


@dataclass
class Connection:
    """A pairwise connection between two agents (one connection group)."""

    agent_1_id: int
    agent_2_id: int
    connection_group_id: int
    sdn_enabled: bool = False
    services: List[ConnectionServiceData] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Connection":
        return cls(
            agent_1_id=int(data["agent_1"]["agent_id"]),
            agent_2_id=int(data["agent_2"]["agent_id"]),
            connection_group_id=int(data["agent_connection_group_id"]),
            sdn_enabled=bool(data.get("agent_connection_group_sdn_enabled")),
        )

    @classmethod
    def from_state(cls, data: Dict[str, Any]) -> "Connection":
        return cls(
            agent_1_id=to_int(data["agent_1_id"]),
            agent_2_id=to_int(data["agent_2_id"]),
            connection_group_id=to_int(data["connection_group_id"]),
        )

    def touches(self, agent_id: int) -> bool:
        return agent_id in (self.agent_1_id, self.agent_2_id)

    def to_state(self) -> Dict[str, Any]:
        return {
            "agent_1_id": self.agent_1_id,
            "agent_2_id": self.agent_2_id,
            "connection_group_id": self.connection_group_id,
            "services": [s.to_state() for s in self.services],
        }


@dataclass
class RemoteSubnet:
    id: int
    ip: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemoteSubnet":
        return cls(
            id=int(data["agent_service_subnet_id"]),
            ip=data.get("agent_service_subnet_ip", ""),
        )


@dataclass
class RemoteService:
    """A service discovered on an agent, as exposed within a connection."""

    id: int
    name: str
    type: str
    enabled: bool = False
    subnets: List[RemoteSubnet] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemoteService":
        return cls(
            id=int(data.get("agent_service_id", 0)),
            name=data.get("agent_service_name", ""),
            type=data.get("agent_service_type", ""),
            enabled=bool(data.get("agent_service_is_enabled", False)),
            subnets=[
                RemoteSubnet.from_api(s) for s in data.get("agent_service_subnets") or []
            ],
        )


@dataclass
class RemoteAgentServices:
    agent_id: int
    services: List[RemoteService] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemoteAgentServices":
        return cls(
            agent_id=int(data["agent_id"]),
            services=[RemoteService.from_api(s) for s in data.get("agent_services") or []],
        )


@dataclass
class ConnectionServices:
    """Nested services response for one connection group.

    enabled_subnets is the connection's explicit enablement list
    (subnet ID -> flag). Subnets not listed there are disabled.
    """

    connection_group_id: int
    agent_1: RemoteAgentServices
    agent_2: RemoteAgentServices
    enabled_subnets: Dict[int, bool] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ConnectionServices":
        enabled = {
            int(s["agent_service_subnet_id"]): bool(s.get("agent_connection_subnet_is_enabled"))
            for s in data.get("agent_connection_subnets") or []
        }
        return cls(
            connection_group_id=int(data["agent_connection_group_id"]),
            agent_1=RemoteAgentServices.from_api(data["agent_1"]),
            agent_2=RemoteAgentServices.from_api(data["agent_2"]),
            enabled_subnets=enabled,
        )

    @property
    def agents(self) -> List[RemoteAgentServices]:
        return [self.agent_1, self.agent_2]


@dataclass
class ServiceFilter:
    """Filter for flattened connection services. Unset fields match everything."""

    agent_id: Optional[int] = None
    service_name_substring: Optional[str] = None
    service_type: Optional[str] = None
    subnet_id: Optional[int] = None

    @classmethod
    def from_state(cls, data: Optional[Dict[str, Any]]) -> Optional["ServiceFilter"]:
        if not data:
            return None
        return cls(
            agent_id=to_int(data["agent_id"]) if data.get("agent_id") is not None else None,
            service_name_substring=data.get("service_name_substring"),
            service_type=data.get("service_type"),
            subnet_id=to_int(data["subnet_id"]) if data.get("subnet_id") is not None else None,
        )


@dataclass
class SubnetChange:
    """Enable/disable request for one subnet in a connection group."""

    subnet_id: int
    enabled: bool

    def to_api(self) -> Dict[str, Any]:
        return {"agent_service_subnet_id": self.subnet_id, "is_enabled": self.enabled}
