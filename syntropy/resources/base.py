"""Capability contracts for resources and data sources.

A resource implements create / read / update / delete / import_state over
flat attribute dictionaries; a data source implements read. Operations
receive an explicit ProviderContext and raise SyntropyError subclasses on
failure. A read returning None means the remote object drifted away and the
resource must be dropped from state.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from syntropy.client import SyntropyClient
from syntropy.exceptions import ResourceOperationError, UnexpectedCountError
from syntropy.models import ConnectionServiceData, ConnectionServices
from syntropy.provider import ProviderContext
from syntropy.schema import Schema
from syntropy.services import services_by_connection

State = Dict[str, Any]


class Resource(ABC):
    type_name: str = ""

    @abstractmethod
    def schema(self) -> Schema:
        ...

    @abstractmethod
    def create(self, ctx: ProviderContext, plan: State) -> State:
        ...

    @abstractmethod
    def read(self, ctx: ProviderContext, state: State) -> Optional[State]:
        ...

    @abstractmethod
    def update(self, ctx: ProviderContext, plan: State, state: State) -> State:
        ...

    @abstractmethod
    def delete(self, ctx: ProviderContext, state: State) -> None:
        ...

    def import_state(self, ctx: ProviderContext, import_id: str) -> State:
        """Seed state from an import ID. The caller reads the resource afterwards."""
        return {"id": import_id}


class DataSource(ABC):
    type_name: str = ""

    @abstractmethod
    def schema(self) -> Schema:
        ...

    @abstractmethod
    def read(self, ctx: ProviderContext, config: State) -> State:
        ...


def operation_error(summary: str, error: Exception) -> ResourceOperationError:
    """Wrap an underlying failure with the user facing operation summary."""
    return ResourceOperationError(summary, detail=str(error))


def get_connection_details(
    client: SyntropyClient, connection_group_ids: Iterable[int]
) -> Dict[int, List[ConnectionServiceData]]:
    """Flattened services for several connection groups, keyed by group ID."""
    ids = list(connection_group_ids)
    if not ids:
        return {}
    return services_by_connection(
        ConnectionServices.from_api(item) for item in client.get_connection_services(ids)
    )


def get_one_connection(client: SyntropyClient, connection_group_id: int) -> ConnectionServices:
    """Services response for exactly one connection group.

    Raises:
        UnexpectedCountError: If the platform returns zero or several connections
    """
    data = client.get_connection_services([connection_group_id])
    if len(data) != 1:
        raise UnexpectedCountError(
            f"Expected 1 connection but got {len(data)}",
            expected=1,
            actual=len(data),
            context={"connection_group_id": connection_group_id},
        )
    return ConnectionServices.from_api(data[0])
