"""SyntropyStack platform provider: agents, connections, meshes and subnet enablement."""

__version__ = "0.1.0"
