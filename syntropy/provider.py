"""
Provider registry and runtime context.

The registry maps resource and data source type names to their
implementation classes, loading them on first use. Configuring the provider
produces a ProviderContext, an explicit value holding the configuration and
API client, which is handed to every resource operation.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple
import importlib
import logging

from syntropy.client import SyntropyClient
from syntropy.config import config_from_block
from syntropy.diagnostics import Diagnostics
from syntropy.exceptions import ConfigurationError, SyntropyError
from syntropy.schema import INT, STRING, Attribute, Schema

logger = logging.getLogger(__name__)

PROVIDER_NAME = "syntropystack"
RESOURCE = "resource"
DATA_SOURCE = "data"


@dataclass(frozen=True)
class TypeDescriptor:
    """
    Descriptor of one resource or data source type.

    Args:
        type_name: Configuration type name (e.g. "syntropystack_agent")
        kind: RESOURCE or DATA_SOURCE
        module: Python module path of the implementation
        class_name: Implementation class inside the module
    """

    type_name: str
    kind: str
    module: str
    class_name: str


def _default_descriptors() -> Dict[Tuple[str, str], TypeDescriptor]:
    descriptors = [
        TypeDescriptor("syntropystack_agent", RESOURCE, "syntropy.resources.agent", "AgentResource"),
        TypeDescriptor(
            "syntropystack_network_connection",
            RESOURCE,
            "syntropy.resources.connection",
            "NetworkConnectionResource",
        ),
        TypeDescriptor(
            "syntropystack_network_connection_mesh",
            RESOURCE,
            "syntropy.resources.mesh",
            "NetworkConnectionMeshResource",
        ),
        TypeDescriptor(
            "syntropystack_network_connection_services",
            RESOURCE,
            "syntropy.resources.services",
            "NetworkConnectionServicesResource",
        ),
        TypeDescriptor(
            "syntropystack_network_connection_subnet",
            RESOURCE,
            "syntropy.resources.services",
            "NetworkConnectionSubnetResource",
        ),
        TypeDescriptor("syntropystack_agent", DATA_SOURCE, "syntropy.resources.agent", "AgentDataSource"),
        TypeDescriptor(
            "syntropystack_agent_search",
            DATA_SOURCE,
            "syntropy.resources.agent",
            "AgentSearchDataSource",
        ),
        TypeDescriptor(
            "syntropystack_network_connection_service",
            DATA_SOURCE,
            "syntropy.resources.services",
            "NetworkConnectionServiceDataSource",
        ),
    ]
    return {(d.kind, d.type_name): d for d in descriptors}


@dataclass
class ProviderContext:
    """Configured provider state passed down to each operation."""

    config: Any = None
    client: Optional[SyntropyClient] = None
    version: str = ""

    def require_client(self) -> SyntropyClient:
        if self.client is None:
            raise ConfigurationError(
                "Provider is not configured. Set access_token or SYNTROPY_ACCESS_TOKEN"
            )
        return self.client

    def close(self) -> None:
        if self.client is not None:
            self.client.close()


def provider_schema() -> Schema:
    return Schema(
        description="SyntropyStack platform provider",
        attributes={
            "access_token": Attribute(
                STRING,
                "Syntropy platform access token",
                optional=True,
                sensitive=True,
            ),
            "api_url": Attribute(STRING, "Syntropy platform API URL", optional=True),
            "timeout": Attribute(INT, "Per request timeout in seconds", optional=True),
        },
    )


def _is_unknown(value: Any) -> bool:
    # interpolations are not evaluated, so their value is unknown
    return isinstance(value, str) and value.startswith("${")


class Provider:
    """
    Registry of resource and data source types.

    Responsibilities:
    - Lookup of implementation classes by type name
    - Lazy loading of implementation modules
    - Building the ProviderContext from provider configuration
    """

    def __init__(
        self,
        version: str = "",
        descriptors: Optional[Dict[Tuple[str, str], TypeDescriptor]] = None,
    ):
        if descriptors is None:
            descriptors = _default_descriptors()
        self.version = version
        self.descriptors = descriptors
        self._classes: Dict[Tuple[str, str], Any] = {}

    def type_names(self, kind: str) -> List[str]:
        return sorted(name for (k, name) in self.descriptors if k == kind)

    def _load(self, kind: str, type_name: str) -> Any:
        key = (kind, type_name)
        if key not in self.descriptors:
            label = "resource" if kind == RESOURCE else "data source"
            raise KeyError(f"Unknown {label} type: {type_name}")
        if key not in self._classes:
            descriptor = self.descriptors[key]
            module = importlib.import_module(descriptor.module)
            self._classes[key] = getattr(module, descriptor.class_name)
        return self._classes[key]

    def new_resource(self, type_name: str) -> Any:
        return self._load(RESOURCE, type_name)()

    def new_data_source(self, type_name: str) -> Any:
        return self._load(DATA_SOURCE, type_name)()

    def configure(
        self,
        block: Optional[Mapping[str, Any]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> Tuple[ProviderContext, Diagnostics]:
        """
        Configure the provider from a `provider "syntropystack"` block.

        Args:
            block: Provider configuration attributes (access_token, api_url, timeout)
            env: Environment mapping for fallbacks (defaults to os.environ)

        Returns:
            (ProviderContext, Diagnostics). The context has no client when
            configuration failed or the token is not known yet.
        """
        diags = Diagnostics()
        block = dict(block or {})

        if _is_unknown(block.get("access_token")):
            diags.add_warning(
                "Unable to create client", "Cannot use unknown value as access_token"
            )
            return ProviderContext(version=self.version), diags
        if _is_unknown(block.get("api_url")):
            diags.add_error("Unable to create client", "Cannot use unknown value as api_url")
            return ProviderContext(version=self.version), diags

        try:
            config = config_from_block(block, env=env)
        except (SyntropyError, ValueError) as e:
            diags.add_error("Unable to create client", str(e))
            return ProviderContext(version=self.version), diags

        client = SyntropyClient(config)
        logger.debug(f"Provider {PROVIDER_NAME} {self.version} configured")
        return ProviderContext(config=config, client=client, version=self.version), diags
