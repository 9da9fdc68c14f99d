"""Connection service and subnet enablement.

Services discovered on agents advertise subnets; each subnet can be enabled
or disabled per connection group independently of its service.
"""

import logging
import uuid
from typing import List, Optional

from syntropy.exceptions import SchemaValidationError, SyntropyError
from syntropy.models import ServiceFilter, SubnetChange, to_int
from syntropy.provider import ProviderContext
from syntropy.resources.base import DataSource, Resource, State, get_one_connection, operation_error
from syntropy.resources.connection import service_attributes
from syntropy.services import (
    by_agent,
    filter_records,
    flatten_connection_services,
    predicates_from_filter,
    subnet_enabled,
)
from syntropy.schema import BOOL, INT, LIST_OBJECT, OBJECT, STRING, Attribute, Schema

logger = logging.getLogger(__name__)


def _apply_changes(
    ctx: ProviderContext, group_id: int, changes: List[SubnetChange], summary: str
) -> None:
    try:
        ctx.require_client().update_connection_services(group_id, changes)
    except SyntropyError as e:
        raise operation_error(summary, e) from e
    logger.debug(f"Applied {len(changes)} subnet changes to connection {group_id}")


class NetworkConnectionServicesResource(Resource):
    """Enables or disables a list of subnets inside one connection group."""

    type_name = "syntropystack_network_connection_services"

    def schema(self) -> Schema:
        return Schema(
            description="Enables services inside connection group",
            attributes={
                "id": Attribute(STRING, "Connection group ID as string", computed=True),
                "connection_group_id": Attribute(
                    INT, "Connection group ID", required=True, requires_replace=True
                ),
                "services": Attribute(
                    LIST_OBJECT,
                    "Subnets to enable or disable",
                    required=True,
                    attributes={
                        "id": Attribute(INT, "Service subnet ID", required=True),
                        "enabled": Attribute(BOOL, "Should the subnet be enabled", required=True),
                    },
                ),
            },
        )

    @staticmethod
    def _changes(services: List[State], enabled: Optional[bool] = None) -> List[SubnetChange]:
        return [
            SubnetChange(
                subnet_id=to_int(s["id"]),
                enabled=bool(s["enabled"]) if enabled is None else enabled,
            )
            for s in services
        ]

    def create(self, ctx: ProviderContext, plan: State) -> State:
        group_id = to_int(plan["connection_group_id"])
        _apply_changes(
            ctx, group_id, self._changes(plan["services"]), "Error while updating connection service"
        )
        state = dict(plan)
        state["id"] = str(group_id)
        return state

    def read(self, ctx: ProviderContext, state: State) -> Optional[State]:
        group_id = to_int(state["connection_group_id"])
        try:
            connection = get_one_connection(ctx.require_client(), group_id)
        except SyntropyError as e:
            raise operation_error(f"Connection not found by ID = {group_id}", e) from e

        services = []
        for service in state.get("services") or []:
            subnet_id = to_int(service["id"])
            services.append(
                {"id": subnet_id, "enabled": subnet_enabled(subnet_id, connection.enabled_subnets)}
            )
        new_state = dict(state)
        new_state["services"] = services
        return new_state

    def update(self, ctx: ProviderContext, plan: State, state: State) -> State:
        group_id = to_int(plan["connection_group_id"])
        _apply_changes(
            ctx,
            group_id,
            self._changes(plan["services"]),
            "Error while updating network connection service",
        )
        new_state = dict(plan)
        new_state["id"] = state.get("id") or str(group_id)
        return new_state

    def delete(self, ctx: ProviderContext, state: State) -> None:
        group_id = to_int(state["connection_group_id"])
        _apply_changes(
            ctx,
            group_id,
            self._changes(state.get("services") or [], enabled=False),
            "Error while updating network connection service",
        )

    def import_state(self, ctx: ProviderContext, import_id: str) -> State:
        """Import every subnet of a connection group with its current flag."""
        group_id = to_int(import_id)
        try:
            connection = get_one_connection(ctx.require_client(), group_id)
        except SyntropyError as e:
            raise operation_error(f"Connection not found by ID = {group_id}", e) from e
        services = [
            {"id": r.id, "enabled": r.enabled} for r in flatten_connection_services(connection)
        ]
        return {"id": str(group_id), "connection_group_id": group_id, "services": services}


class NetworkConnectionSubnetResource(Resource):
    """Enables or disables one subnet inside a connection group."""

    type_name = "syntropystack_network_connection_subnet"

    def schema(self) -> Schema:
        return Schema(
            description="Enables a subnet inside connection group",
            attributes={
                "id": Attribute(STRING, "<connection_group_id>:<subnet_id>", computed=True),
                "connection_group_id": Attribute(
                    INT, "Connection group ID", required=True, requires_replace=True
                ),
                "subnet_id": Attribute(INT, "Subnet ID", required=True, requires_replace=True),
                "enable": Attribute(BOOL, "Should the subnet be enabled", required=True),
            },
        )

    def _set(self, ctx: ProviderContext, state: State, enabled: bool) -> None:
        _apply_changes(
            ctx,
            to_int(state["connection_group_id"]),
            [SubnetChange(subnet_id=to_int(state["subnet_id"]), enabled=enabled)],
            "Error while updating network connection service",
        )

    def create(self, ctx: ProviderContext, plan: State) -> State:
        self._set(ctx, plan, bool(plan["enable"]))
        state = dict(plan)
        state["id"] = f"{to_int(plan['connection_group_id'])}:{to_int(plan['subnet_id'])}"
        return state

    def read(self, ctx: ProviderContext, state: State) -> Optional[State]:
        group_id = to_int(state["connection_group_id"])
        try:
            connection = get_one_connection(ctx.require_client(), group_id)
        except SyntropyError as e:
            raise operation_error("Error while getting network connection service", e) from e
        new_state = dict(state)
        new_state["enable"] = subnet_enabled(to_int(state["subnet_id"]), connection.enabled_subnets)
        return new_state

    def update(self, ctx: ProviderContext, plan: State, state: State) -> State:
        self._set(ctx, plan, bool(plan["enable"]))
        new_state = dict(plan)
        new_state["id"] = state.get("id")
        return new_state

    def delete(self, ctx: ProviderContext, state: State) -> None:
        self._set(ctx, state, False)

    def import_state(self, ctx: ProviderContext, import_id: str) -> State:
        """Import by "<connection_group_id>:<subnet_id>"."""
        group, sep, subnet = import_id.partition(":")
        if not sep or not group or not subnet:
            raise SchemaValidationError(
                "Subnet import ID must be <connection_group_id>:<subnet_id>",
                context={"import_id": import_id},
            )
        return {
            "id": import_id,
            "connection_group_id": to_int(group),
            "subnet_id": to_int(subnet),
            "enable": None,
        }


class NetworkConnectionServiceDataSource(DataSource):
    """Flattened and filtered services of one connection group."""

    type_name = "syntropystack_network_connection_service"

    def schema(self) -> Schema:
        return Schema(
            description="Lists services and subnets of a network connection",
            attributes={
                "id": Attribute(STRING, "Lookup ID randomly generated", computed=True),
                "connection_group_id": Attribute(INT, "Connection group ID", required=True),
                "agent_id": Attribute(INT, "Only services of this agent", optional=True),
                "filter": Attribute(
                    OBJECT,
                    "Service filter",
                    optional=True,
                    attributes={
                        "agent_id": Attribute(INT, "Filter by agent ID", optional=True),
                        "service_name_substring": Attribute(
                            STRING, "Filter by part of the service name", optional=True
                        ),
                        "service_type": Attribute(STRING, "Filter by service type", optional=True),
                        "subnet_id": Attribute(INT, "Filter by subnet ID", optional=True),
                    },
                ),
                "services": Attribute(
                    LIST_OBJECT,
                    "Matching service subnets",
                    computed=True,
                    attributes=service_attributes(),
                ),
            },
        )

    def read(self, ctx: ProviderContext, config: State) -> State:
        group_id = to_int(config["connection_group_id"])
        try:
            connection = get_one_connection(ctx.require_client(), group_id)
        except SyntropyError as e:
            raise operation_error("Error while getting network connection services", e) from e

        predicates = predicates_from_filter(ServiceFilter.from_state(config.get("filter")))
        if config.get("agent_id") is not None:
            predicates.append(by_agent(to_int(config["agent_id"])))

        records = filter_records(flatten_connection_services(connection), predicates)
        state = dict(config)
        state["id"] = str(uuid.uuid4())
        state["services"] = [r.to_state() for r in records]
        return state
