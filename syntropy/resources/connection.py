"""Point-to-point network connection resource."""

import logging
from typing import Any, Dict, List, Optional

from syntropy.exceptions import ResourceNotFoundError, SchemaValidationError, SyntropyError
from syntropy.mesh import AgentPair
from syntropy.models import Connection, to_int
from syntropy.provider import ProviderContext
from syntropy.resources.base import Resource, State, get_connection_details, operation_error
from syntropy.schema import BOOL, INT, LIST, LIST_OBJECT, STRING, Attribute, Schema

logger = logging.getLogger(__name__)


def service_attributes() -> Dict[str, Attribute]:
    return {
        "id": Attribute(INT, "Network connection service subnet ID", computed=True),
        "service_id": Attribute(INT, "Network connection service ID", computed=True),
        "name": Attribute(STRING, "Network connection service name", computed=True),
        "ip": Attribute(STRING, "Network connection service subnet IP", computed=True),
        "type": Attribute(
            STRING, "Network connection service type (Kubernetes, Docker, etc.)", computed=True
        ),
        "enabled": Attribute(BOOL, "Is network connection service subnet enabled?", computed=True),
        "agent_id": Attribute(INT, "Agent ID the service runs on", computed=True),
    }


def connection_attributes() -> Dict[str, Attribute]:
    return {
        "agent_1_id": Attribute(INT, "Agent 1 ID", computed=True),
        "agent_2_id": Attribute(INT, "Agent 2 ID", computed=True),
        "connection_group_id": Attribute(INT, "Unique identifier for the connection", computed=True),
        "services": Attribute(
            LIST_OBJECT,
            "List of services inside the network connection",
            computed=True,
            attributes=service_attributes(),
        ),
    }


def _validate_peer(value: List[int]) -> Optional[str]:
    if len(value) != 2:
        return "agent_peer must contain exactly two agent IDs"
    if value[0] == value[1]:
        return "agent_peer must contain two different agent IDs"
    return None


def find_connection(connections: List[Dict[str, Any]], agent_1: int, agent_2: int) -> Connection:
    """Find the connection between two agents in either direction.

    Raises:
        ResourceNotFoundError: If no connection joins the two agents
    """
    wanted = AgentPair(agent_1, agent_2)
    for item in connections:
        conn = Connection.from_api(item)
        if AgentPair(conn.agent_1_id, conn.agent_2_id) == wanted:
            return conn
    raise ResourceNotFoundError(
        f"Connection not found between agent_1={agent_1} and agent_2={agent_2}"
    )


class NetworkConnectionResource(Resource):
    type_name = "syntropystack_network_connection"

    def schema(self) -> Schema:
        return Schema(
            description="Creates a point-to-point network connection between two agents",
            attributes={
                "id": Attribute(INT, "Connection group ID", computed=True),
                "agent_peer": Attribute(
                    LIST,
                    "IDs of the two agents to connect",
                    required=True,
                    requires_replace=True,
                    elem_type=INT,
                    validators=[_validate_peer],
                ),
                "sdn_enabled": Attribute(BOOL, "Should SDN be enabled?", optional=True, computed=True),
                "services": Attribute(
                    LIST_OBJECT,
                    "Services exposed within the connection",
                    computed=True,
                    attributes=service_attributes(),
                ),
            },
        )

    def _services(self, ctx: ProviderContext, connection_group_id: int) -> List[Dict[str, Any]]:
        details = get_connection_details(ctx.require_client(), [connection_group_id])
        return [s.to_state() for s in details.get(connection_group_id, [])]

    def create(self, ctx: ProviderContext, plan: State) -> State:
        agent_1, agent_2 = [to_int(a) for a in plan["agent_peer"]]
        try:
            created = ctx.require_client().create_p2p_connections(
                [AgentPair(agent_1, agent_2).to_api()], bool(plan.get("sdn_enabled"))
            )
            if not created:
                raise ResourceNotFoundError("Platform returned no connection")
            group_id = int(created[0]["agent_connection_group_id"])
        except (SyntropyError, KeyError, TypeError, ValueError) as e:
            raise operation_error("Error while creating network connection", e) from e

        logger.info(f"Created connection {group_id} between agents {agent_1} and {agent_2}")
        try:
            services = self._services(ctx, group_id)
        except SyntropyError as e:
            raise operation_error(f"Unable to get connection {group_id} services", e) from e
        return {
            "id": group_id,
            "agent_peer": [agent_1, agent_2],
            "sdn_enabled": plan.get("sdn_enabled"),
            "services": services,
        }

    def read(self, ctx: ProviderContext, state: State) -> Optional[State]:
        agent_1, agent_2 = [to_int(a) for a in state["agent_peer"]]
        try:
            conn = find_connection(ctx.require_client().list_connections(), agent_1, agent_2)
            services = self._services(ctx, conn.connection_group_id)
        except SyntropyError as e:
            raise operation_error("Error while reading network connection", e) from e

        new_state = dict(state)
        new_state["id"] = conn.connection_group_id
        new_state["sdn_enabled"] = conn.sdn_enabled
        new_state["services"] = services
        return new_state

    def update(self, ctx: ProviderContext, plan: State, state: State) -> State:
        group_id = to_int(state["id"])
        try:
            ctx.require_client().update_connections(
                [{"connection_group_id": group_id, "is_sdn_enabled": bool(plan.get("sdn_enabled"))}]
            )
        except SyntropyError as e:
            raise operation_error("Error while updating network connection", e) from e
        new_state = dict(state)
        new_state["sdn_enabled"] = plan.get("sdn_enabled")
        return new_state

    def delete(self, ctx: ProviderContext, state: State) -> None:
        try:
            ctx.require_client().remove_connections([to_int(state["id"])])
        except SyntropyError as e:
            raise operation_error("Error while deleting network connection", e) from e

    def import_state(self, ctx: ProviderContext, import_id: str) -> State:
        """Import a connection by its agent pair, e.g. "12,34"."""
        parts = [p.strip() for p in import_id.split(",")]
        if len(parts) != 2 or not all(parts):
            raise SchemaValidationError(
                "Connection import ID must be two agent IDs separated by a comma",
                context={"import_id": import_id},
            )
        return {"id": None, "agent_peer": [to_int(p) for p in parts], "sdn_enabled": None, "services": []}
