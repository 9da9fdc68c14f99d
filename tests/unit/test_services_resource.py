"""Unit tests for connection service and subnet resources."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "fixtures"))

from api_samples import connection_services_payload
from syntropy.exceptions import ApiError, ResourceOperationError, SchemaValidationError
from syntropy.models import SubnetChange
from syntropy.provider import ProviderContext
from syntropy.resources.services import (
    NetworkConnectionServiceDataSource,
    NetworkConnectionServicesResource,
    NetworkConnectionSubnetResource,
)


@pytest.fixture
def client():
    mock = MagicMock()
    mock.get_connection_services.return_value = [
        connection_services_payload(100, {11: True, 21: False})
    ]
    return mock


@pytest.fixture
def ctx(client):
    return ProviderContext(client=client)


class TestServicesResource:
    resource = NetworkConnectionServicesResource()

    def test_create(self, ctx, client):
        plan = {
            "connection_group_id": 100,
            "services": [{"id": 11, "enabled": True}, {"id": 21, "enabled": False}],
        }
        state = self.resource.create(ctx, plan)
        client.update_connection_services.assert_called_once_with(
            100, [SubnetChange(11, True), SubnetChange(21, False)]
        )
        assert state["id"] == "100"

    def test_create_failure(self, ctx, client):
        client.update_connection_services.side_effect = ApiError("boom")
        with pytest.raises(ResourceOperationError) as exc:
            self.resource.create(ctx, {"connection_group_id": 100, "services": []})
        assert exc.value.message == "Error while updating connection service"

    def test_read(self, ctx):
        state = {
            "id": "100",
            "connection_group_id": 100,
            "services": [{"id": 11, "enabled": False}, {"id": 22, "enabled": True}],
        }
        new_state = self.resource.read(ctx, state)
        assert new_state["services"] == [{"id": 11, "enabled": True}, {"id": 22, "enabled": False}]

    def test_read_ambiguous(self, ctx, client):
        client.get_connection_services.return_value = [
            connection_services_payload(100),
            connection_services_payload(100),
        ]
        with pytest.raises(ResourceOperationError) as exc:
            self.resource.read(ctx, {"connection_group_id": 100, "services": []})
        assert exc.value.message == "Connection not found by ID = 100"
        assert "Expected 1 connection but got 2" in exc.value.detail

    def test_update_keeps_id(self, ctx, client):
        plan = {"connection_group_id": 100, "services": [{"id": 22, "enabled": True}]}
        state = self.resource.update(ctx, plan, {"id": "100"})
        client.update_connection_services.assert_called_once_with(100, [SubnetChange(22, True)])
        assert state["id"] == "100"

    def test_delete_disables_everything(self, ctx, client):
        state = {
            "connection_group_id": 100,
            "services": [{"id": 11, "enabled": True}, {"id": 21, "enabled": True}],
        }
        self.resource.delete(ctx, state)
        client.update_connection_services.assert_called_once_with(
            100, [SubnetChange(11, False), SubnetChange(21, False)]
        )

    def test_import(self, ctx):
        state = self.resource.import_state(ctx, "100")
        assert state["connection_group_id"] == 100
        assert state["services"] == [
            {"id": 11, "enabled": True},
            {"id": 21, "enabled": False},
            {"id": 22, "enabled": False},
            {"id": 31, "enabled": False},
        ]


class TestSubnetResource:
    resource = NetworkConnectionSubnetResource()

    def test_create(self, ctx, client):
        state = self.resource.create(
            ctx, {"connection_group_id": 100, "subnet_id": 21, "enable": True}
        )
        client.update_connection_services.assert_called_once_with(100, [SubnetChange(21, True)])
        assert state["id"] == "100:21"

    def test_read(self, ctx):
        state = self.resource.read(
            ctx, {"id": "100:11", "connection_group_id": 100, "subnet_id": 11, "enable": False}
        )
        assert state["enable"] is True

    def test_read_unlisted_subnet(self, ctx):
        state = self.resource.read(
            ctx, {"id": "100:31", "connection_group_id": 100, "subnet_id": 31, "enable": True}
        )
        assert state["enable"] is False

    def test_delete(self, ctx, client):
        self.resource.delete(ctx, {"connection_group_id": 100, "subnet_id": 21, "enable": True})
        client.update_connection_services.assert_called_once_with(100, [SubnetChange(21, False)])

    def test_import(self, ctx):
        state = self.resource.import_state(ctx, "100:21")
        assert (state["connection_group_id"], state["subnet_id"]) == (100, 21)

    @pytest.mark.parametrize("import_id", ["100", ":21", "100:"])
    def test_import_invalid(self, ctx, import_id):
        with pytest.raises(SchemaValidationError):
            self.resource.import_state(ctx, import_id)


class TestServiceDataSource:
    data_source = NetworkConnectionServiceDataSource()

    def test_type_filter(self, ctx):
        state = self.data_source.read(
            ctx, {"connection_group_id": 100, "filter": {"service_type": "database"}}
        )
        assert [s["id"] for s in state["services"]] == [21, 22]
        assert all(s["type"] == "database" for s in state["services"])
        assert state["id"]

    def test_agent_id_attribute(self, ctx):
        state = self.data_source.read(ctx, {"connection_group_id": 100, "agent_id": 2})
        assert [s["name"] for s in state["services"]] == ["redis-cache"]

    def test_no_filter(self, ctx):
        state = self.data_source.read(ctx, {"connection_group_id": 100})
        assert len(state["services"]) == 4

    def test_lookup_failure(self, ctx, client):
        client.get_connection_services.return_value = []
        with pytest.raises(ResourceOperationError) as exc:
            self.data_source.read(ctx, {"connection_group_id": 100})
        assert exc.value.message == "Error while getting network connection services"
