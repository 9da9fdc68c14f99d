"""Connection service flattening and filtering.

The platform returns services nested as connection -> agents -> services ->
subnets, with the connection's enabled subnets in a separate list. These
helpers turn that into flat ConnectionServiceData records and filter them
with small composable predicates.
"""

from typing import Callable, Dict, Iterable, List, Optional

from syntropy.models import ConnectionServiceData, ConnectionServices, ServiceFilter

Predicate = Callable[[ConnectionServiceData], bool]


def enabled_subnets(connection: ConnectionServices) -> Dict[int, bool]:
    """Explicit subnet enablement list of a connection (subnet ID -> flag)."""
    return dict(connection.enabled_subnets)


def subnet_enabled(subnet_id: int, enabled: Dict[int, bool]) -> bool:
    """Resolve a subnet flag: False unless listed, the listed value otherwise."""
    return enabled.get(subnet_id, False)


def flatten_connection_services(connection: ConnectionServices) -> List[ConnectionServiceData]:
    """Flatten both agents' services of a connection into one record per subnet."""
    enabled = enabled_subnets(connection)
    records = []
    for agent in connection.agents:
        for service in agent.services:
            for subnet in service.subnets:
                records.append(
                    ConnectionServiceData(
                        id=subnet.id,
                        service_id=service.id,
                        name=service.name,
                        ip=subnet.ip,
                        type=service.type,
                        enabled=subnet_enabled(subnet.id, enabled),
                        agent_id=agent.agent_id,
                        connection_id=connection.connection_group_id,
                    )
                )
    return records


def by_agent(agent_id: int) -> Predicate:
    return lambda record: record.agent_id == agent_id


def by_service_name(substring: str) -> Predicate:
    return lambda record: substring in record.name


def by_service_type(service_type: str) -> Predicate:
    return lambda record: record.type == service_type


def by_subnet(subnet_id: int) -> Predicate:
    return lambda record: record.id == subnet_id


def predicates_from_filter(service_filter: Optional[ServiceFilter]) -> List[Predicate]:
    """Build one predicate per filter field that is set."""
    if service_filter is None:
        return []
    predicates = []
    if service_filter.agent_id is not None:
        predicates.append(by_agent(service_filter.agent_id))
    if service_filter.service_name_substring is not None:
        predicates.append(by_service_name(service_filter.service_name_substring))
    if service_filter.service_type is not None:
        predicates.append(by_service_type(service_filter.service_type))
    if service_filter.subnet_id is not None:
        predicates.append(by_subnet(service_filter.subnet_id))
    return predicates


def filter_records(
    records: Iterable[ConnectionServiceData], predicates: Iterable[Predicate]
) -> List[ConnectionServiceData]:
    """Keep records matching every predicate. No predicates keeps everything."""
    predicates = list(predicates)
    return [r for r in records if all(p(r) for p in predicates)]


def services_by_connection(
    connections: Iterable[ConnectionServices],
) -> Dict[int, List[ConnectionServiceData]]:
    """Flattened services keyed by connection group ID."""
    return {c.connection_group_id: flatten_connection_services(c) for c in connections}
