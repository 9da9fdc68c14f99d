"""Configuration file parser for SyntropyStack.

Reads the provider block, resources and data sources from Terraform
configuration (.tf), YAML (.yml/.yaml) or JSON files. All three formats use
the same layout:

    provider:
      syntropystack: {access_token: ...}
    resource:
      syntropystack_network_connection_mesh:
        office: {agent_ids: [1, 2, 3]}
    data:
      syntropystack_agent:
        gateway: {name: gw}
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple, Union
import json
import logging

import click
import hcl2
import yaml

from syntropy.exceptions import ConfigurationError
from syntropy.provider import DATA_SOURCE, PROVIDER_NAME, RESOURCE

logger = logging.getLogger(__name__)

# Sections read from configuration files
EXTRACT: List[str] = ["provider", "resource", "data"]

YAML_SUFFIXES = (".yml", ".yaml")


@dataclass
class Block:
    """One resource or data source block."""

    kind: str
    type_name: str
    name: str
    attributes: Dict[str, Any]

    @property
    def address(self) -> str:
        prefix = "data." if self.kind == DATA_SOURCE else ""
        return f"{prefix}{self.type_name}.{self.name}"


@dataclass
class StackConfig:
    provider: Dict[str, Any] = field(default_factory=dict)
    resources: List[Block] = field(default_factory=list)
    data: List[Block] = field(default_factory=list)


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def clean_value(value: Any) -> Any:
    """Strip HCL parser artifacts (quoted strings, "__" marker keys)."""
    if isinstance(value, dict):
        return {
            _unquote(k): clean_value(v)
            for k, v in value.items()
            if not str(k).startswith("__")
        }
    if isinstance(value, list):
        return [clean_value(v) for v in value]
    if isinstance(value, str):
        return _unquote(value)
    return value


def _mappings(section: Any) -> Iterator[Dict[str, Any]]:
    # hcl2 yields a list of single key dicts, YAML and JSON a plain dict
    if section is None:
        return
    if isinstance(section, dict):
        yield section
        return
    if isinstance(section, list):
        for item in section:
            if not isinstance(item, dict):
                raise ConfigurationError("Malformed configuration section", context={"item": item})
            yield item
        return
    raise ConfigurationError("Malformed configuration section", context={"section": section})


def _blocks(kind: str, section: Any) -> List[Block]:
    blocks = []
    for by_type in _mappings(section):
        for type_name, named in by_type.items():
            for by_name in _mappings(named):
                for name, attributes in by_name.items():
                    if isinstance(attributes, list) and len(attributes) == 1:
                        attributes = attributes[0]
                    if attributes is None:
                        attributes = {}
                    if not isinstance(attributes, dict):
                        raise ConfigurationError(
                            "Block body must be a mapping",
                            context={"block": f"{type_name}.{name}"},
                        )
                    blocks.append(Block(kind, type_name, name, attributes))
    return blocks


def _provider_block(section: Any) -> Dict[str, Any]:
    for by_name in _mappings(section):
        if PROVIDER_NAME in by_name:
            body = by_name[PROVIDER_NAME]
            if isinstance(body, list):
                body = body[0] if body else {}
            return dict(body or {})
    return {}


def parse_document(document: Dict[str, Any]) -> StackConfig:
    """Turn a parsed document into provider, resource and data blocks.

    Raises:
        ConfigurationError: On malformed sections or duplicate addresses
    """
    document = clean_value(document or {})
    if not isinstance(document, dict):
        raise ConfigurationError("Configuration must be a mapping")
    unknown = sorted(k for k in document if k not in EXTRACT)
    for key in unknown:
        logger.warning(f"Ignoring unsupported configuration section {key!r}")

    config = StackConfig(
        provider=_provider_block(document.get("provider")),
        resources=_blocks(RESOURCE, document.get("resource")),
        data=_blocks(DATA_SOURCE, document.get("data")),
    )
    seen = set()
    for block in config.resources + config.data:
        if block.address in seen:
            raise ConfigurationError("Duplicate block", context={"address": block.address})
        seen.add(block.address)
    return config


def read_document(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError("Configuration file not found", context={"path": str(path)})
    with click.open_file(str(path), "r", encoding="utf8") as f:
        try:
            if path.suffix == ".tf":
                return hcl2.load(f)
            if path.suffix in YAML_SUFFIXES:
                return yaml.safe_load(f) or {}
            if path.suffix == ".json":
                return json.load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                "Unable to parse configuration file", context={"path": str(path), "error": e}
            ) from e
        except Exception as e:
            # hcl2 raises lark exceptions
            raise ConfigurationError(
                "A Terraform HCL parsing error occurred", context={"path": str(path), "error": e}
            ) from e
    raise ConfigurationError(
        "Unsupported configuration file type (.tf, .yml, .yaml or .json)",
        context={"path": str(path)},
    )


def load_config_file(path: Union[str, Path]) -> StackConfig:
    """Read and parse one configuration file."""
    logger.info(f"Parsing {path}")
    config = parse_document(read_document(path))
    logger.info(f"Found {len(config.resources)} resource(s) and {len(config.data)} data source(s)")
    return config


def split_address(address: str) -> Tuple[str, str, str]:
    """Split "type.name" or "data.type.name" into (kind, type_name, name).

    Raises:
        ConfigurationError: If the address is malformed
    """
    parts = address.split(".")
    if len(parts) == 3 and parts[0] == "data":
        return DATA_SOURCE, parts[1], parts[2]
    if len(parts) == 2 and all(parts):
        return RESOURCE, parts[0], parts[1]
    raise ConfigurationError("Invalid address, expected TYPE.NAME", context={"address": address})
