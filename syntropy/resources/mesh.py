"""Network connection mesh resource.

Keeps a full mesh of pairwise connections between a set of agents. Reads
check the observed connection count against N*(N-1)/2 and drop the resource
from state on mismatch. Updates tear down every connection touching an
agent that left the set before re-creating the mesh.
"""

import logging
import uuid
from typing import List, Optional

from syntropy.exceptions import SchemaValidationError, SyntropyError
from syntropy.mesh import (
    expected_connection_count,
    index_by_pair,
    is_mesh_consistent,
    mesh_pairs,
    stale_connections,
    unique_agents,
)
from syntropy.models import Connection, to_int
from syntropy.provider import ProviderContext
from syntropy.resources.base import (
    Resource,
    State,
    get_connection_details,
    operation_error,
)
from syntropy.resources.connection import connection_attributes
from syntropy.schema import BOOL, INT, LIST_OBJECT, SET, STRING, Attribute, Schema

logger = logging.getLogger(__name__)


def _agent_ids(values) -> List[int]:
    return unique_agents(to_int(a) for a in values or [])


class NetworkConnectionMeshResource(Resource):
    type_name = "syntropystack_network_connection_mesh"

    def schema(self) -> Schema:
        return Schema(
            description="Creates network mesh between agents",
            attributes={
                "id": Attribute(STRING, "Network connection mesh ID randomly generated", computed=True),
                "agent_ids": Attribute(
                    SET,
                    "List of agent IDs for network connection mesh",
                    required=True,
                    elem_type=INT,
                ),
                "sdn_enabled": Attribute(BOOL, "Should SDN be enabled?", optional=True),
                "connections": Attribute(
                    LIST_OBJECT,
                    "List of network connections created by mesh resource",
                    computed=True,
                    attributes=connection_attributes(),
                ),
            },
        )

    def _list_connections(self, ctx: ProviderContext, agent_ids: List[int]) -> List[Connection]:
        pairs = [p.to_api() for p in mesh_pairs(agent_ids)]
        if not pairs:
            return []
        remote = ctx.require_client().search_connections(pairs)
        return [Connection.from_api(c) for c in remote]

    def _attach_services(self, ctx: ProviderContext, connections: List[Connection]) -> None:
        ids = [c.connection_group_id for c in connections]
        try:
            details = get_connection_details(ctx.require_client(), ids)
        except SyntropyError as e:
            raise operation_error(f"Unable to get connection {ids} services", e) from e
        for conn in connections:
            conn.services = details.get(conn.connection_group_id, [])

    def _build(self, ctx: ProviderContext, agent_ids: List[int], sdn_enabled: bool) -> List[Connection]:
        try:
            ctx.require_client().create_mesh(agent_ids, sdn_enabled)
        except SyntropyError as e:
            raise operation_error("Error while creating network mesh", e) from e
        try:
            connections = self._list_connections(ctx, agent_ids)
        except SyntropyError as e:
            raise operation_error("Error while getting network mesh connections", e) from e
        self._attach_services(ctx, connections)
        return connections

    def create(self, ctx: ProviderContext, plan: State) -> State:
        agent_ids = _agent_ids(plan["agent_ids"])
        sdn_enabled = bool(plan.get("sdn_enabled"))
        logger.info(f"Creating mesh over {len(agent_ids)} agents")
        connections = self._build(ctx, agent_ids, sdn_enabled)
        return {
            "id": str(uuid.uuid4()),
            "agent_ids": agent_ids,
            "sdn_enabled": plan.get("sdn_enabled"),
            "connections": [c.to_state() for c in connections],
        }

    def read(self, ctx: ProviderContext, state: State) -> Optional[State]:
        agent_ids = _agent_ids(state.get("agent_ids"))
        try:
            connections = self._list_connections(ctx, agent_ids)
        except SyntropyError as e:
            raise operation_error("Error while getting network mesh connections", e) from e

        if not is_mesh_consistent(agent_ids, len(connections)):
            # changed outside of the provider: drop state so the mesh is recreated
            logger.warning(
                f"Mesh {state.get('id')} has {len(connections)} connections, "
                f"expected {expected_connection_count(len(agent_ids))}"
            )
            return None

        self._attach_services(ctx, connections)
        new_state = dict(state)
        new_state["agent_ids"] = agent_ids
        new_state["connections"] = [c.to_state() for c in connections]
        return new_state

    def update(self, ctx: ProviderContext, plan: State, state: State) -> State:
        previous = _agent_ids(state.get("agent_ids"))
        desired = _agent_ids(plan["agent_ids"])
        known = index_by_pair(Connection.from_state(c) for c in state.get("connections") or [])

        stale = stale_connections(previous, desired, known)
        if stale:
            ids = [c.connection_group_id for c in stale]
            logger.info(f"Removing {len(ids)} connections of agents leaving the mesh")
            try:
                ctx.require_client().remove_connections(ids)
            except SyntropyError as e:
                raise operation_error("Error while deleting network mesh connections", e) from e

        connections = self._build(ctx, desired, bool(plan.get("sdn_enabled")))
        return {
            "id": state.get("id"),
            "agent_ids": desired,
            "sdn_enabled": plan.get("sdn_enabled"),
            "connections": [c.to_state() for c in connections],
        }

    def delete(self, ctx: ProviderContext, state: State) -> None:
        ids = [to_int(c["connection_group_id"]) for c in state.get("connections") or []]
        if not ids:
            return
        try:
            ctx.require_client().remove_connections(ids)
        except SyntropyError as e:
            raise operation_error("Error while deleting network mesh connections", e) from e

    def import_state(self, ctx: ProviderContext, import_id: str) -> State:
        """Import a mesh by its comma separated agent IDs, e.g. "1,2,3"."""
        agent_ids = _agent_ids(p.strip() for p in import_id.split(",") if p.strip())
        if len(agent_ids) < 2:
            raise SchemaValidationError(
                "Mesh import ID must list at least two distinct agent IDs separated by commas",
                context={"import_id": import_id},
            )
        return {
            "id": str(uuid.uuid4()),
            "agent_ids": agent_ids,
            "sdn_enabled": None,
            "connections": [],
        }
