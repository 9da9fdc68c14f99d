"""Mesh reconciliation for SyntropyStack.

A mesh over N agents is the set of N*(N-1)/2 pairwise connections. This
module generates the pairs, checks an observed connection count against the
expected one, and works out which connections must be torn down when agents
leave the mesh.
"""

from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List, Mapping, Sequence, Set

from syntropy.models import Connection


@dataclass(frozen=True, eq=False)
class AgentPair:
    """Unordered pair of agent IDs.

    AgentPair(1, 2) == AgentPair(2, 1). The attribute order is kept as
    generated so API filters can be built from it.
    """

    first: Hashable
    second: Hashable

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AgentPair):
            return NotImplemented
        return frozenset((self.first, self.second)) == frozenset((other.first, other.second))

    def __hash__(self) -> int:
        return hash(frozenset((self.first, self.second)))

    def __contains__(self, agent_id: object) -> bool:
        return agent_id == self.first or agent_id == self.second

    def to_api(self) -> Dict[str, Hashable]:
        # the platform stores the later agent as agent_1
        return {"agent_1_id": self.second, "agent_2_id": self.first}


def unique_agents(agent_ids: Iterable[Hashable]) -> List[Hashable]:
    """Agent IDs with repeats dropped, first occurrence order kept."""
    return list(dict.fromkeys(agent_ids))


def mesh_pairs(agent_ids: Sequence[Hashable]) -> List[AgentPair]:
    """Generate every unordered pair for a full mesh.

    Args:
        agent_ids: Ordered agent IDs; repeated IDs count once

    Returns:
        One AgentPair per i < j combination of distinct agents,
        N*(N-1)/2 in total
    """
    agent_ids = unique_agents(agent_ids)
    pairs = []
    for i in range(len(agent_ids) - 1):
        for j in range(i + 1, len(agent_ids)):
            pairs.append(AgentPair(agent_ids[i], agent_ids[j]))
    return pairs


def expected_connection_count(agent_count: int) -> int:
    """Number of connections in a full mesh of agent_count agents."""
    if agent_count < 2:
        return 0
    return agent_count * (agent_count - 1) // 2


def is_mesh_consistent(agent_ids: Iterable[Hashable], observed_count: int) -> bool:
    """Check an observed connection count against the full mesh count.

    A mismatch means the mesh was changed outside of the provider; the
    caller drops its state and recreates the mesh.
    """
    return observed_count == expected_connection_count(len(set(agent_ids)))


def removed_agents(previous: Iterable[Hashable], desired: Iterable[Hashable]) -> Set[Hashable]:
    """Agents present in the previous set but not in the desired one."""
    return set(previous) - set(desired)


def index_by_pair(connections: Iterable[Connection]) -> Dict[AgentPair, Connection]:
    return {AgentPair(c.agent_1_id, c.agent_2_id): c for c in connections}


def stale_connections(
    previous: Iterable[Hashable],
    desired: Iterable[Hashable],
    connections: Mapping[AgentPair, Connection],
) -> List[Connection]:
    """Connections that touch an agent removed from the mesh.

    Args:
        previous: Agent IDs the mesh was built from
        desired: Agent IDs the mesh should now contain
        connections: Known connections keyed by agent pair

    Returns:
        Connections to delete, each listed once, in lookup order.
        Connections between agents kept in both sets are never returned.
    """
    removed = removed_agents(previous, desired)
    if not removed:
        return []
    return [conn for conn in connections.values() if any(conn.touches(a) for a in removed)]
