"""Resource and data source implementations.

Implementations are looked up by type name through syntropy.provider.Provider.
"""
