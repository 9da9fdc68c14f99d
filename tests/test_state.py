"""Unit tests for the local state file."""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from syntropy.exceptions import ConfigurationError
from syntropy.state import STATE_VERSION, StateFile


class TestStateFile:
    def test_missing_file_is_empty(self, tmp_path):
        state = StateFile.load(tmp_path / "state.json")
        assert state.addresses() == []

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "state.json"
        state = StateFile(path)
        state.set("syntropystack_agent.gw", "syntropystack_agent", {"id": 7, "name": "gw"})
        state.save()

        document = json.loads(path.read_text())
        assert document["version"] == STATE_VERSION
        loaded = StateFile.load(path)
        assert loaded.addresses() == ["syntropystack_agent.gw"]
        assert loaded.get("syntropystack_agent.gw") == {"id": 7, "name": "gw"}
        assert loaded.type_of("syntropystack_agent.gw") == "syntropystack_agent"

    def test_get_returns_copy(self, tmp_path):
        state = StateFile(tmp_path / "state.json")
        state.set("a.b", "a", {"id": 1})
        state.get("a.b")["id"] = 2
        assert state.get("a.b") == {"id": 1}

    def test_remove(self, tmp_path):
        state = StateFile(tmp_path / "state.json")
        state.set("a.b", "a", {"id": 1})
        state.remove("a.b")
        state.remove("a.missing")
        assert state.get("a.b") is None
        assert state.type_of("a.b") is None

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            StateFile.load(path)

    def test_unsupported_version(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"version": 99, "resources": {}}))
        with pytest.raises(ConfigurationError, match="Unsupported state file version"):
            StateFile.load(path)
