"""Local state file.

State is a JSON document keyed by resource address:

    {"version": 1, "resources": {"syntropystack_agent.web": {"type": "...", "attributes": {...}}}}
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import logging

from syntropy.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

STATE_VERSION = 1
DEFAULT_STATE_FILE = "syntropystack.tfstate.json"


class StateFile:
    """Resource states persisted between runs."""

    def __init__(self, path: Union[str, Path], resources: Optional[Dict[str, Dict[str, Any]]] = None):
        self.path = Path(path)
        self.resources: Dict[str, Dict[str, Any]] = resources or {}

    @classmethod
    def load(cls, path: Union[str, Path]) -> "StateFile":
        """Load state from disk. A missing file is an empty state.

        Raises:
            ConfigurationError: If the file is not valid state JSON
        """
        path = Path(path)
        if not path.exists():
            logger.debug(f"No state file at {path}, starting empty")
            return cls(path)
        try:
            with open(path, "r", encoding="utf8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError("State file is not valid JSON", context={"path": str(path)}) from e
        if not isinstance(data, dict) or data.get("version") != STATE_VERSION:
            raise ConfigurationError(
                "Unsupported state file version",
                context={"path": str(path), "version": data.get("version") if isinstance(data, dict) else None},
            )
        return cls(path, dict(data.get("resources") or {}))

    def save(self) -> None:
        document = {"version": STATE_VERSION, "resources": self.resources}
        tmp = self.path.with_name(self.path.name + ".tmp")
        with open(tmp, "w", encoding="utf8") as f:
            json.dump(document, f, indent=2, sort_keys=True)
        tmp.replace(self.path)
        logger.debug(f"Saved {len(self.resources)} resources to {self.path}")

    def get(self, address: str) -> Optional[Dict[str, Any]]:
        entry = self.resources.get(address)
        return dict(entry["attributes"]) if entry else None

    def type_of(self, address: str) -> Optional[str]:
        entry = self.resources.get(address)
        return entry["type"] if entry else None

    def set(self, address: str, type_name: str, attributes: Dict[str, Any]) -> None:
        self.resources[address] = {"type": type_name, "attributes": dict(attributes)}

    def remove(self, address: str) -> None:
        self.resources.pop(address, None)

    def addresses(self) -> List[str]:
        return sorted(self.resources)
