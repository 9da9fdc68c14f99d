"""
Plan and apply engine.

Drives resource and data source operations for a parsed configuration
against the local state file:

- refresh reads every resource in state and drops the ones that drifted away
- apply creates, updates, replaces and deletes resources to match configuration
- destroy deletes every resource in state
- import seeds state from an import ID and reads the resource

Failures are reported as diagnostics per address; one failing resource does
not stop the others.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from syntropy.diagnostics import Diagnostics
from syntropy.exceptions import ApiError, SyntropyError
from syntropy.fileparser import Block, StackConfig
from syntropy.provider import Provider, ProviderContext
from syntropy.schema import changed_attributes, replace_triggers, validate_config
from syntropy.state import StateFile

logger = logging.getLogger(__name__)

CREATE = "create"
UPDATE = "update"
REPLACE = "replace"
NOOP = "noop"
DELETE = "delete"
READ = "read"
IMPORT = "import"
REMOVED = "removed"


def _decoded(func, *args) -> Any:
    """Call a resource operation, raising malformed platform replies as ApiError."""
    try:
        return func(*args)
    except (KeyError, TypeError, ValueError) as e:
        raise ApiError(f"Unexpected response from platform: {type(e).__name__}: {e}") from e


@dataclass
class OperationResult:
    """Outcome of one operation on one address."""

    address: str
    action: str
    state: Optional[Dict[str, Any]] = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def failed(self) -> bool:
        return self.diagnostics.has_error()


@dataclass
class PlannedChange:
    address: str
    action: str
    changed: List[str] = field(default_factory=list)


class Engine:
    """Runs resource operations with an explicit provider context."""

    def __init__(self, provider: Provider, ctx: ProviderContext):
        self.provider = provider
        self.ctx = ctx

    def _guard(self, result: OperationResult, func, *args) -> Any:
        try:
            return func(*args)
        except SyntropyError as e:
            logger.debug(f"{result.address}: {e}")
            result.diagnostics.add_exception(e, result.address)
        except KeyError as e:
            result.diagnostics.add_error(str(e.args[0]) if e.args else str(e), "", result.address)
        return None

    def plan_resource(self, block: Block, state: Optional[Dict[str, Any]]) -> PlannedChange:
        """Work out what apply would do for one resource block.

        Raises:
            SyntropyError: If the block does not match its schema
            KeyError: If the resource type is unknown
        """
        resource = self.provider.new_resource(block.type_name)
        schema = resource.schema()
        config = validate_config(schema, block.attributes)
        if state is None:
            return PlannedChange(block.address, CREATE)
        triggers = replace_triggers(schema, config, state)
        if triggers:
            return PlannedChange(block.address, REPLACE, triggers)
        changed = changed_attributes(schema, config, state)
        if changed:
            return PlannedChange(block.address, UPDATE, changed)
        return PlannedChange(block.address, NOOP)

    def refresh_resource(self, address: str, type_name: str, state: Dict[str, Any]) -> OperationResult:
        result = OperationResult(address, READ)
        resource = self._guard(result, self.provider.new_resource, type_name)
        if resource is None:
            return result
        try:
            new_state = _decoded(resource.read, self.ctx, state)
        except SyntropyError as e:
            result.diagnostics.add_exception(e, address)
            result.state = state
            return result
        if new_state is None:
            logger.warning(f"{address} no longer exists remotely, removing from state")
            result.action = REMOVED
            return result
        result.state = new_state
        return result

    def refresh(self, state_file: StateFile) -> List[OperationResult]:
        """Read every resource in state, updating or dropping its entry."""
        results = []
        for address in state_file.addresses():
            type_name = state_file.type_of(address)
            result = self.refresh_resource(address, type_name, state_file.get(address))
            if result.action == REMOVED:
                state_file.remove(address)
            elif result.state is not None and not result.failed:
                state_file.set(address, type_name, result.state)
            results.append(result)
        return results

    def apply_resource(self, block: Block, state: Optional[Dict[str, Any]]) -> OperationResult:
        result = OperationResult(block.address, NOOP, state)
        planned = self._guard(result, self.plan_resource, block, state)
        if planned is None:
            return result
        result.action = planned.action
        if planned.action == NOOP:
            return result

        resource = self.provider.new_resource(block.type_name)
        config = validate_config(resource.schema(), block.attributes)
        try:
            if planned.action == CREATE:
                logger.info(f"Creating {block.address}")
                result.state = _decoded(resource.create, self.ctx, config)
            elif planned.action == REPLACE:
                logger.info(f"Replacing {block.address} ({', '.join(planned.changed)} changed)")
                _decoded(resource.delete, self.ctx, state)
                result.state = None
                result.state = _decoded(resource.create, self.ctx, config)
            else:
                logger.info(f"Updating {block.address} ({', '.join(planned.changed)} changed)")
                result.state = _decoded(resource.update, self.ctx, config, state)
        except SyntropyError as e:
            result.diagnostics.add_exception(e, block.address)
        return result

    def delete_resource(self, address: str, type_name: str, state: Dict[str, Any]) -> OperationResult:
        result = OperationResult(address, DELETE, state)
        resource = self._guard(result, self.provider.new_resource, type_name)
        if resource is None:
            return result
        logger.info(f"Deleting {address}")
        try:
            _decoded(resource.delete, self.ctx, state)
            result.state = None
        except SyntropyError as e:
            result.diagnostics.add_exception(e, address)
        return result

    def apply(self, config: StackConfig, state_file: StateFile) -> List[OperationResult]:
        """Bring remote objects in line with configuration.

        State is refreshed first so that resources changed outside of the
        provider are re-created. Resources in state but no longer
        configured are deleted.
        """
        results = [r for r in self.refresh(state_file) if r.failed or r.action == REMOVED]

        configured = set()
        for block in config.resources:
            configured.add(block.address)
            previous_type = state_file.type_of(block.address)
            previous = state_file.get(block.address)
            if previous_type is not None and previous_type != block.type_name:
                result = self.delete_resource(block.address, previous_type, previous)
                if result.failed:
                    results.append(result)
                    continue
                state_file.remove(block.address)
                previous = None
            result = self.apply_resource(block, previous)
            self._record(state_file, block.address, block.type_name, result)
            results.append(result)

        for address in state_file.addresses():
            if address in configured:
                continue
            result = self.delete_resource(address, state_file.type_of(address), state_file.get(address))
            if not result.failed:
                state_file.remove(address)
            results.append(result)
        return results

    def destroy(self, state_file: StateFile) -> List[OperationResult]:
        results = []
        for address in reversed(state_file.addresses()):
            result = self.delete_resource(address, state_file.type_of(address), state_file.get(address))
            if not result.failed:
                state_file.remove(address)
            results.append(result)
        return results

    def import_resource(self, address: str, type_name: str, import_id: str, state_file: StateFile) -> OperationResult:
        """Seed state from an import ID and read the resource."""
        result = OperationResult(address, IMPORT)
        resource = self._guard(result, self.provider.new_resource, type_name)
        if resource is None:
            return result
        try:
            seeded = _decoded(resource.import_state, self.ctx, import_id)
            state = _decoded(resource.read, self.ctx, seeded)
        except SyntropyError as e:
            result.diagnostics.add_exception(e, address)
            return result
        if state is None:
            result.diagnostics.add_error(
                "Cannot import non-existent remote object", f"ID {import_id!r}", address
            )
            return result
        result.state = state
        state_file.set(address, type_name, state)
        return result

    def read_data(self, block: Block) -> OperationResult:
        result = OperationResult(block.address, READ)
        data_source = self._guard(result, self.provider.new_data_source, block.type_name)
        if data_source is None:
            return result
        config = self._guard(result, validate_config, data_source.schema(), block.attributes)
        if config is None:
            return result
        result.state = self._guard(result, _decoded, data_source.read, self.ctx, config)
        return result

    def _record(self, state_file: StateFile, address: str, type_name: str, result: OperationResult) -> None:
        if result.state is None:
            state_file.remove(address)
        else:
            state_file.set(address, type_name, result.state)
