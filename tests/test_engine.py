"""
Unit tests for the plan and apply engine.

Uses an in-memory resource type so lifecycle decisions can be checked
without the platform API:
- create, update, replace and no-op planning
- drift handling during refresh and apply
- orphan deletion, destroy and import
- per-address diagnostics
"""

import sys
import uuid
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from syntropy.engine import CREATE, DELETE, NOOP, REMOVED, REPLACE, UPDATE, Engine
from syntropy.exceptions import ResourceOperationError
from syntropy.fileparser import Block, StackConfig
from syntropy.provider import DATA_SOURCE, RESOURCE, Provider, ProviderContext
from syntropy.resources.base import DataSource, Resource
from syntropy.schema import INT, STRING, Attribute, Schema
from syntropy.state import StateFile

TYPE = "fake_thing"


class FakeThing(Resource):
    type_name = TYPE

    def __init__(self, remote):
        self.remote = remote

    def schema(self):
        return Schema(
            description="fake",
            attributes={
                "id": Attribute(STRING, computed=True),
                "name": Attribute(STRING, required=True),
                "size": Attribute(INT, optional=True),
                "zone": Attribute(STRING, optional=True, requires_replace=True),
            },
        )

    def create(self, ctx, plan):
        if plan["name"] == "broken":
            raise ResourceOperationError("Error while creating thing", detail="HTTP 500")
        if plan["name"] == "garbled":
            reply = {}
            return dict(plan, id=reply["thing_id"])
        thing_id = f"thing-{uuid.uuid4().hex[:8]}"
        state = dict(plan, id=thing_id)
        self.remote[thing_id] = state
        return state

    def read(self, ctx, state):
        if state["id"] not in self.remote:
            return None
        return dict(self.remote[state["id"]])

    def update(self, ctx, plan, state):
        new_state = dict(plan, id=state["id"])
        self.remote[state["id"]] = new_state
        return new_state

    def delete(self, ctx, state):
        self.remote.pop(state["id"], None)

    def import_state(self, ctx, import_id):
        return {"id": import_id}


class FakeLookup(DataSource):
    type_name = TYPE

    def schema(self):
        return Schema(
            description="fake",
            attributes={"name": Attribute(STRING, required=True), "size": Attribute(INT, computed=True)},
        )

    def read(self, ctx, config):
        return {"name": config["name"], "size": len(config["name"])}


class FakeProvider(Provider):
    def __init__(self):
        super().__init__(descriptors={})
        self.remote = {}

    def type_names(self, kind):
        return [TYPE]

    def new_resource(self, type_name):
        if type_name != TYPE:
            raise KeyError(f"Unknown resource type: {type_name}")
        return FakeThing(self.remote)

    def new_data_source(self, type_name):
        if type_name != TYPE:
            raise KeyError(f"Unknown data source type: {type_name}")
        return FakeLookup()


def _block(name="a", **attributes):
    attributes.setdefault("name", name)
    return Block(RESOURCE, TYPE, name, attributes)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def engine(provider):
    return Engine(provider, ProviderContext())


@pytest.fixture
def state_file(tmp_path):
    return StateFile(tmp_path / "state.json")


class TestPlan:
    def test_create(self, engine):
        assert engine.plan_resource(_block(), None).action == CREATE

    def test_noop(self, engine):
        planned = engine.plan_resource(_block(size=1), {"id": "x", "name": "a", "size": 1})
        assert planned.action == NOOP

    def test_update(self, engine):
        planned = engine.plan_resource(_block(size=2), {"id": "x", "name": "a", "size": 1})
        assert planned.action == UPDATE
        assert planned.changed == ["size"]

    def test_replace(self, engine):
        planned = engine.plan_resource(_block(zone="b"), {"id": "x", "name": "a", "zone": "a"})
        assert planned.action == REPLACE
        assert planned.changed == ["zone"]


class TestApply:
    def test_create_then_noop(self, engine, provider, state_file):
        config = StackConfig(resources=[_block(size=1)])
        results = engine.apply(config, state_file)
        assert [r.action for r in results] == [CREATE]
        assert state_file.get(f"{TYPE}.a")["size"] == 1
        assert len(provider.remote) == 1

        results = engine.apply(config, state_file)
        assert [r.action for r in results] == [NOOP]

    def test_update(self, engine, provider, state_file):
        engine.apply(StackConfig(resources=[_block(size=1)]), state_file)
        thing_id = state_file.get(f"{TYPE}.a")["id"]
        results = engine.apply(StackConfig(resources=[_block(size=5)]), state_file)
        assert [r.action for r in results] == [UPDATE]
        assert state_file.get(f"{TYPE}.a") == {"id": thing_id, "name": "a", "size": 5, "zone": None}

    def test_replace(self, engine, provider, state_file):
        engine.apply(StackConfig(resources=[_block(zone="eu")]), state_file)
        old_id = state_file.get(f"{TYPE}.a")["id"]
        results = engine.apply(StackConfig(resources=[_block(zone="us")]), state_file)
        assert [r.action for r in results] == [REPLACE]
        assert old_id not in provider.remote
        assert state_file.get(f"{TYPE}.a")["zone"] == "us"

    def test_drift_recreates(self, engine, provider, state_file):
        config = StackConfig(resources=[_block()])
        engine.apply(config, state_file)
        provider.remote.clear()
        results = engine.apply(config, state_file)
        assert [r.action for r in results] == [REMOVED, CREATE]
        assert len(provider.remote) == 1

    def test_orphan_deleted(self, engine, provider, state_file):
        engine.apply(StackConfig(resources=[_block("a"), _block("b")]), state_file)
        results = engine.apply(StackConfig(resources=[_block("a")]), state_file)
        assert [(r.address, r.action) for r in results] == [
            (f"{TYPE}.a", NOOP),
            (f"{TYPE}.b", DELETE),
        ]
        assert state_file.addresses() == [f"{TYPE}.a"]
        assert len(provider.remote) == 1

    def test_failure_is_reported_per_address(self, engine, state_file):
        results = engine.apply(StackConfig(resources=[_block("broken"), _block("ok")]), state_file)
        broken, ok = results
        assert broken.failed
        assert broken.diagnostics.errors[0].summary == "Error while creating thing"
        assert broken.diagnostics.errors[0].detail == "HTTP 500"
        assert not ok.failed
        assert state_file.addresses() == [f"{TYPE}.ok"]

    def test_malformed_reply_keeps_earlier_state(self, engine, provider, state_file):
        results = engine.apply(StackConfig(resources=[_block("ok"), _block("garbled")]), state_file)
        ok, garbled = results
        assert not ok.failed
        assert garbled.failed
        assert garbled.diagnostics.errors[0].summary.startswith("Unexpected response from platform")
        assert state_file.addresses() == [f"{TYPE}.ok"]
        state_file.save()
        reloaded = StateFile.load(state_file.path)
        assert reloaded.get(f"{TYPE}.ok") == state_file.get(f"{TYPE}.ok")

    def test_validation_failure(self, engine, state_file):
        results = engine.apply(StackConfig(resources=[_block(bogus=1)]), state_file)
        assert results[0].failed
        assert "Unsupported attribute" in results[0].diagnostics.errors[0].summary
        assert state_file.addresses() == []

    def test_unknown_type(self, engine, state_file):
        block = Block(RESOURCE, "nope", "x", {})
        results = engine.apply(StackConfig(resources=[block]), state_file)
        assert results[0].diagnostics.errors[0].summary == "Unknown resource type: nope"


class TestRefreshDestroyImport:
    def test_refresh_drops_missing(self, engine, provider, state_file):
        engine.apply(StackConfig(resources=[_block("a"), _block("b")]), state_file)
        provider.remote.pop(state_file.get(f"{TYPE}.b")["id"])
        results = engine.refresh(state_file)
        assert [r.action for r in results] == ["read", REMOVED]
        assert state_file.addresses() == [f"{TYPE}.a"]

    def test_destroy(self, engine, provider, state_file):
        engine.apply(StackConfig(resources=[_block("a"), _block("b")]), state_file)
        results = engine.destroy(state_file)
        assert all(r.action == DELETE for r in results)
        assert state_file.addresses() == []
        assert provider.remote == {}

    def test_import(self, engine, provider, state_file):
        provider.remote["thing-9"] = {"id": "thing-9", "name": "x", "size": 3, "zone": None}
        result = engine.import_resource(f"{TYPE}.x", TYPE, "thing-9", state_file)
        assert not result.failed
        assert state_file.get(f"{TYPE}.x")["size"] == 3

    def test_import_missing(self, engine, state_file):
        result = engine.import_resource(f"{TYPE}.x", TYPE, "thing-404", state_file)
        assert result.failed
        assert state_file.addresses() == []


class TestReadData:
    def test_read(self, engine):
        result = engine.read_data(Block(DATA_SOURCE, TYPE, "q", {"name": "abc"}))
        assert result.state == {"name": "abc", "size": 3}
        assert result.address == f"data.{TYPE}.q"

    def test_missing_required(self, engine):
        result = engine.read_data(Block(DATA_SOURCE, TYPE, "q", {}))
        assert result.failed
        assert result.state is None
