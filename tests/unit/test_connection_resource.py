"""Unit tests for the point-to-point network connection resource."""

import unittest
import sys
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "fixtures"))

from api_samples import connection_payload, connection_services_payload
from syntropy.exceptions import (
    ApiError,
    ResourceNotFoundError,
    ResourceOperationError,
    SchemaValidationError,
)
from syntropy.provider import ProviderContext
from syntropy.resources.connection import NetworkConnectionResource, find_connection
from syntropy.schema import validate_config


class TestFindConnection(unittest.TestCase):
    def test_either_direction(self):
        connections = [connection_payload(55, 2, 1), connection_payload(56, 3, 1)]
        self.assertEqual(find_connection(connections, 1, 2).connection_group_id, 55)
        self.assertEqual(find_connection(connections, 2, 1).connection_group_id, 55)

    def test_not_found(self):
        with self.assertRaises(ResourceNotFoundError):
            find_connection([connection_payload(55, 2, 1)], 1, 3)


class TestNetworkConnectionResource(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.client.get_connection_services.return_value = [connection_services_payload(55)]
        self.ctx = ProviderContext(client=self.client)
        self.resource = NetworkConnectionResource()

    def test_schema_requires_two_distinct_agents(self):
        schema = self.resource.schema()
        self.assertEqual(validate_config(schema, {"agent_peer": [1, 2]})["agent_peer"], [1, 2])
        with self.assertRaises(SchemaValidationError):
            validate_config(schema, {"agent_peer": [1, 1]})
        with self.assertRaises(SchemaValidationError):
            validate_config(schema, {"agent_peer": [1, 2, 3]})

    def test_create(self):
        self.client.create_p2p_connections.return_value = [{"agent_connection_group_id": 55}]
        state = self.resource.create(self.ctx, {"agent_peer": [1, 2], "sdn_enabled": None})

        self.client.create_p2p_connections.assert_called_once_with(
            [{"agent_1_id": 2, "agent_2_id": 1}], False
        )
        self.assertEqual(state["id"], 55)
        self.assertEqual(len(state["services"]), 4)

    def test_create_empty_response(self):
        self.client.create_p2p_connections.return_value = []
        with self.assertRaises(ResourceOperationError) as ctx:
            self.resource.create(self.ctx, {"agent_peer": [1, 2], "sdn_enabled": None})
        self.assertEqual(ctx.exception.message, "Error while creating network connection")

    def test_create_malformed_response(self):
        self.client.create_p2p_connections.return_value = [{}]
        with self.assertRaises(ResourceOperationError) as ctx:
            self.resource.create(self.ctx, {"agent_peer": [1, 2], "sdn_enabled": None})
        self.assertEqual(ctx.exception.message, "Error while creating network connection")
        self.assertIn("agent_connection_group_id", ctx.exception.detail)

    def test_read(self):
        self.client.list_connections.return_value = [connection_payload(55, 2, 1, sdn_enabled=True)]
        state = self.resource.read(self.ctx, {"id": 55, "agent_peer": [1, 2], "sdn_enabled": None})
        self.assertEqual(state["id"], 55)
        self.assertTrue(state["sdn_enabled"])
        self.assertEqual([s["id"] for s in state["services"]], [11, 21, 22, 31])

    def test_read_missing(self):
        self.client.list_connections.return_value = []
        with self.assertRaises(ResourceOperationError) as ctx:
            self.resource.read(self.ctx, {"id": 55, "agent_peer": [1, 2]})
        self.assertEqual(ctx.exception.message, "Error while reading network connection")
        self.assertIn("Connection not found", ctx.exception.detail)

    def test_update(self):
        state = self.resource.update(
            self.ctx,
            {"agent_peer": [1, 2], "sdn_enabled": True},
            {"id": 55, "agent_peer": [1, 2], "sdn_enabled": False, "services": []},
        )
        self.client.update_connections.assert_called_once_with(
            [{"connection_group_id": 55, "is_sdn_enabled": True}]
        )
        self.assertTrue(state["sdn_enabled"])

    def test_delete(self):
        self.resource.delete(self.ctx, {"id": 55})
        self.client.remove_connections.assert_called_once_with([55])

    def test_delete_failure(self):
        self.client.remove_connections.side_effect = ApiError("boom", status_code=500)
        with self.assertRaises(ResourceOperationError) as ctx:
            self.resource.delete(self.ctx, {"id": 55})
        self.assertEqual(ctx.exception.message, "Error while deleting network connection")

    def test_import(self):
        self.assertEqual(self.resource.import_state(self.ctx, "1,2")["agent_peer"], [1, 2])
        with self.assertRaises(SchemaValidationError):
            self.resource.import_state(self.ctx, "1")


if __name__ == "__main__":
    unittest.main()
