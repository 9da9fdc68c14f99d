"""Agent resource and agent data sources."""

import logging
import uuid
from typing import Dict, Optional

from syntropy.exceptions import SchemaValidationError, SyntropyError, UnexpectedCountError
from syntropy.models import Agent, AgentFilter, to_int
from syntropy.provider import ProviderContext
from syntropy.resources.base import DataSource, Resource, State, operation_error
from syntropy.schema import BOOL, INT, LIST, LIST_OBJECT, OBJECT, SET, STRING, Attribute, Schema

logger = logging.getLogger(__name__)


def agent_attributes() -> Dict[str, Attribute]:
    """Computed attributes describing one agent."""
    return {
        "id": Attribute(INT, "Unique identifier for the agent", computed=True),
        "name": Attribute(STRING, "Name of the agent as it appears in Platform UI", computed=True),
        "public_ipv4": Attribute(STRING, "IP address of the agent in IPv4 format", computed=True),
        "status": Attribute(STRING, "Current status of the agent", computed=True),
        "is_online": Attribute(BOOL, "Whether the agent is online", computed=True),
        "version": Attribute(STRING, "Version of the agent", computed=True),
        "location_country": Attribute(STRING, "Agent's location country two-letter code", computed=True),
        "location_city": Attribute(STRING, "City, where the agent is based", computed=True),
        "device_id": Attribute(
            STRING,
            "A unique agent identifier, usually machine id with a workspace prefix",
            computed=True,
        ),
        "is_virtual": Attribute(BOOL, "Indicates if it's a virtual agent", computed=True),
        "type": Attribute(STRING, "Possible types: LINUX, MACOS, WINDOWS, VIRTUAL", computed=True),
        "modified_at": Attribute(
            STRING, "Date and time when this agent was modified (ISO 8601)", computed=True
        ),
        "tags": Attribute(
            LIST_OBJECT,
            "Agent tags",
            computed=True,
            attributes={
                "id": Attribute(INT, "Agent tag id", computed=True),
                "name": Attribute(STRING, "Agent tag name", computed=True),
            },
        ),
        "provider": Attribute(
            OBJECT,
            "Provider of the agent's endpoint",
            computed=True,
            attributes={
                "id": Attribute(INT, "Agent provider id", computed=True),
                "name": Attribute(STRING, "Agent provider name", computed=True),
            },
        ),
    }


class AgentResource(Resource):
    """Virtual agent registered on the platform."""

    type_name = "syntropystack_agent"

    def schema(self) -> Schema:
        return Schema(
            description="Creates a virtual agent",
            attributes={
                "id": Attribute(INT, "Agent ID", computed=True),
                "name": Attribute(STRING, "Agent name", required=True),
                "provider_id": Attribute(INT, "Agent provider ID", optional=True, computed=True),
                "token": Attribute(
                    STRING,
                    "Agent token used to register the agent",
                    required=True,
                    sensitive=True,
                    requires_replace=True,
                ),
                "tags": Attribute(SET, "Agent tag names", optional=True, elem_type=STRING),
            },
        )

    def create(self, ctx: ProviderContext, plan: State) -> State:
        try:
            data = ctx.require_client().create_agent(
                name=plan["name"],
                token=plan["token"],
                provider_id=plan.get("provider_id"),
                tags=plan.get("tags"),
            )
            agent_id = int(data["agent_id"])
        except (SyntropyError, KeyError) as e:
            raise operation_error("Error while creating virtual agent", e) from e

        logger.info(f"Created agent {agent_id}")
        state = dict(plan)
        state["id"] = agent_id
        return state

    def read(self, ctx: ProviderContext, state: State) -> Optional[State]:
        agent_id = to_int(state["id"])
        try:
            data = ctx.require_client().get_agents([agent_id])
        except SyntropyError as e:
            raise operation_error("Error while getting virtual agent", e) from e

        if len(data) != 1:
            raise operation_error(
                "Something went wrong getting virtual agent",
                UnexpectedCountError(
                    f"Agent count {len(data)}, but expected 1", expected=1, actual=len(data)
                ),
            )

        agent = Agent.from_api(data[0])
        new_state = dict(state)
        new_state["id"] = agent.id
        new_state["name"] = agent.name
        new_state["provider_id"] = agent.provider.id if agent.provider else None
        new_state["tags"] = [t.name for t in agent.tags]
        return new_state

    def update(self, ctx: ProviderContext, plan: State, state: State) -> State:
        agent_id = to_int(state["id"])
        try:
            ctx.require_client().update_agent(
                agent_id,
                name=plan.get("name"),
                provider_id=plan.get("provider_id"),
                tags=plan.get("tags"),
            )
        except SyntropyError as e:
            raise operation_error("Error while updating virtual agent", e) from e
        new_state = dict(plan)
        new_state["id"] = agent_id
        if new_state.get("provider_id") is None:
            new_state["provider_id"] = state.get("provider_id")
        return new_state

    def delete(self, ctx: ProviderContext, state: State) -> None:
        try:
            ctx.require_client().remove_agents([to_int(state["id"])])
        except SyntropyError as e:
            raise operation_error("Error while deleting virtual agent", e) from e

    def import_state(self, ctx: ProviderContext, import_id: str) -> State:
        try:
            agent_id = to_int(import_id)
        except SchemaValidationError as e:
            raise SchemaValidationError(
                "Agent import ID must be numeric", context={"import_id": import_id}
            ) from e
        return {"id": agent_id, "name": None, "provider_id": None, "token": None, "tags": None}


class AgentDataSource(DataSource):
    """First agent matching a name search."""

    type_name = "syntropystack_agent"

    def schema(self) -> Schema:
        attributes = agent_attributes()
        attributes["name"] = Attribute(STRING, "Agent name to search for", required=True)
        return Schema(description="Looks up an agent by name", attributes=attributes)

    def read(self, ctx: ProviderContext, config: State) -> State:
        try:
            agents = ctx.require_client().search_agents(search=config["name"], skip=0, take=1)
        except SyntropyError as e:
            raise operation_error("Error while getting Syntropy agent", e) from e
        if not agents:
            raise operation_error(
                "Error while getting Syntropy agent",
                UnexpectedCountError(
                    f"No agent found matching name {config['name']!r}", expected=1, actual=0
                ),
            )
        return Agent.from_api(agents[0]).to_state()


class AgentSearchDataSource(DataSource):
    """Paged agent search with an optional structured filter."""

    type_name = "syntropystack_agent_search"

    def schema(self) -> Schema:
        return Schema(
            description="Searches agents",
            attributes={
                "id": Attribute(STRING, "Search ID randomly generated", computed=True),
                "skip": Attribute(INT, "Number of agents to skip", optional=True),
                "take": Attribute(INT, "Number of agents to return", optional=True),
                "search": Attribute(STRING, "Free text search", optional=True),
                "filter": Attribute(
                    OBJECT,
                    "Agent filter",
                    optional=True,
                    attributes={
                        "id": Attribute(LIST, "Filter by agent ID", optional=True, elem_type=INT),
                        "name": Attribute(STRING, "Filter by agent name", optional=True),
                        "tag_id": Attribute(LIST, "Filter by tag ID", optional=True, elem_type=INT),
                        "provider_id": Attribute(
                            LIST, "Filter by provider ID", optional=True, elem_type=INT
                        ),
                        "type": Attribute(LIST, "Filter by agent type", optional=True, elem_type=STRING),
                        "version": Attribute(
                            LIST, "Filter by agent version", optional=True, elem_type=STRING
                        ),
                        "tag_name": Attribute(LIST, "Filter by tag name", optional=True, elem_type=STRING),
                        "status": Attribute(
                            LIST, "Filter by agent status", optional=True, elem_type=STRING
                        ),
                        "location_country": Attribute(
                            LIST, "Filter by location country", optional=True, elem_type=STRING
                        ),
                        "modified_at_from": Attribute(
                            STRING, "Filter by agent modified at from date", optional=True
                        ),
                        "modified_at_to": Attribute(
                            STRING, "Filter by agent modified at to date", optional=True
                        ),
                    },
                ),
                "agents": Attribute(
                    LIST_OBJECT, "Matching agents", computed=True, attributes=agent_attributes()
                ),
            },
        )

    def read(self, ctx: ProviderContext, config: State) -> State:
        agent_filter = AgentFilter.from_state(config.get("filter"))
        try:
            api_filter = agent_filter.to_api() if agent_filter else {}
        except SchemaValidationError as e:
            raise operation_error("Error while parsing agent filter data", e) from e

        try:
            agents = ctx.require_client().search_agents(
                agent_filter=api_filter,
                search=config.get("search"),
                skip=config.get("skip"),
                take=config.get("take"),
            )
        except SyntropyError as e:
            raise operation_error("Error while getting Syntropy agent", e) from e

        state = dict(config)
        state["id"] = str(uuid.uuid4())
        state["agents"] = [Agent.from_api(a).to_state() for a in agents]
        return state
