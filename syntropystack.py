#!/usr/bin/env python
import json
import os
import sys
from pathlib import Path

import click

from syntropy.config import ACCESS_TOKEN_ENV, API_URL_ENV, configure_logging
from syntropy.diagnostics import Diagnostics
from syntropy.engine import DELETE, NOOP, REMOVED, Engine, OperationResult
from syntropy.exceptions import SyntropyError
from syntropy.fileparser import StackConfig, load_config_file, split_address
from syntropy.provider import DATA_SOURCE, RESOURCE, Provider, provider_schema
from syntropy.state import DEFAULT_STATE_FILE, StateFile


__version__ = "0.1.0"

DEFAULT_CONFIG_FILE = "main.tf"

ACTION_COLOURS = {
    "create": "green",
    "update": "yellow",
    "replace": "magenta",
    "delete": "red",
    "removed": "red",
    "import": "green",
    "read": "cyan",
    "noop": "white",
}


def my_excepthook(exc_type, exc_value, exc_traceback):
    print(f"Unhandled error: {exc_type}, {exc_value}, {exc_traceback}")


def _fail(message: str) -> None:
    click.echo(click.style(f"\nERROR: {message}\n", fg="red", bold=True), err=True)
    sys.exit(1)


def _print_diagnostics(diags: Diagnostics) -> None:
    for diag in diags.errors:
        click.echo(click.style(str(diag), fg="red"), err=True)
    for diag in diags.warnings:
        click.echo(click.style(str(diag), fg="yellow"), err=True)


def _load_config(path: str, required: bool = True) -> StackConfig:
    if not required and not Path(path).is_file():
        return StackConfig()
    try:
        return load_config_file(path)
    except SyntropyError as e:
        _fail(str(e))


def _configure(config: StackConfig, access_token, api_url) -> Engine:
    block = dict(config.provider)
    if access_token is not None:
        block.setdefault("access_token", access_token)
    if api_url is not None:
        block.setdefault("api_url", api_url)
    provider = Provider(version=__version__)
    ctx, diags = provider.configure(block, env=os.environ)
    _print_diagnostics(diags)
    if diags.has_error():
        sys.exit(1)
    return Engine(provider, ctx)


def _load_state(path: str) -> StateFile:
    try:
        return StateFile.load(path)
    except SyntropyError as e:
        _fail(str(e))


def _report(results) -> bool:
    failed = False
    for result in results:
        action = result.action
        label = f"  {action:<8} {result.address}"
        if result.failed:
            failed = True
            click.echo(click.style(label, fg="red", bold=True))
            _print_diagnostics(result.diagnostics)
        else:
            click.echo(click.style(label, fg=ACTION_COLOURS.get(action, "white")))
    return failed


def _summary(results) -> str:
    counts = {}
    for result in results:
        if result.failed:
            continue
        counts[result.action] = counts.get(result.action, 0) + 1
    if not counts:
        return "No changes."
    return ", ".join(f"{n} {action}" for action, n in sorted(counts.items()))


def common_options(func):
    func = click.option("--debug", is_flag=True, default=False, help="Dump exception tracebacks")(func)
    func = click.option(
        "--api-url",
        envvar=API_URL_ENV,
        default=None,
        help=f"Platform API URL (or {API_URL_ENV})",
    )(func)
    func = click.option(
        "--access-token",
        envvar=ACCESS_TOKEN_ENV,
        default=None,
        help=f"Platform access token (or {ACCESS_TOKEN_ENV})",
    )(func)
    func = click.option(
        "--state",
        "state_path",
        default=DEFAULT_STATE_FILE,
        help=f"State file (default {DEFAULT_STATE_FILE})",
    )(func)
    func = click.option(
        "--config",
        "config_path",
        default=DEFAULT_CONFIG_FILE,
        help="Configuration file (.tf, .yml or .json)",
    )(func)
    return func


def _start(debug: bool) -> None:
    configure_logging(debug)
    if not debug:
        sys.excepthook = my_excepthook


@click.version_option(version=__version__, prog_name="syntropystack")
@click.group()
def cli():
    """
    SyntropyStack manages agents, network connections, meshes and connection services

    For help with a specific command type:

    syntropystack [COMMAND] --help

    """
    pass


@cli.command()
def resources():
    """List supported resource and data source types"""
    provider = Provider(version=__version__)
    click.echo(click.style("\nResources:", fg="white", bold=True))
    for name in provider.type_names(RESOURCE):
        click.echo(f"  {name}")
    click.echo(click.style("\nData sources:", fg="white", bold=True))
    for name in provider.type_names(DATA_SOURCE):
        click.echo(f"  {name}")


@cli.command()
@click.argument("type_name")
@click.option("--data", "is_data", is_flag=True, default=False, help="Show the data source schema")
def schema(type_name, is_data):
    """Print the schema of a resource type as JSON ("provider" for the provider block)"""
    if type_name == "provider":
        click.echo(json.dumps(provider_schema().to_dict(), indent=4))
        return
    provider = Provider(version=__version__)
    try:
        if is_data:
            impl = provider.new_data_source(type_name)
        else:
            impl = provider.new_resource(type_name)
    except KeyError as e:
        _fail(e.args[0])
    click.echo(json.dumps(impl.schema().to_dict(), indent=4))


@cli.command()
@common_options
def apply(config_path, state_path, access_token, api_url, debug):
    """Create, update and delete resources to match configuration"""
    _start(debug)
    config = _load_config(config_path)
    engine = _configure(config, access_token, api_url)
    state_file = _load_state(state_path)
    click.echo(click.style(f"\nApplying {config_path}..", fg="white", bold=True))
    try:
        results = engine.apply(config, state_file)
    finally:
        state_file.save()
        engine.ctx.close()
    failed = _report(r for r in results if r.action != NOOP or r.failed)
    click.echo(f"\n{_summary(r for r in results if r.action != NOOP)}")
    if failed:
        sys.exit(1)


@cli.command()
@common_options
def refresh(config_path, state_path, access_token, api_url, debug):
    """Read every resource in state and drop the ones that no longer exist"""
    _start(debug)
    config = _load_config(config_path, required=False)
    engine = _configure(config, access_token, api_url)
    state_file = _load_state(state_path)
    try:
        results = engine.refresh(state_file)
    finally:
        state_file.save()
        engine.ctx.close()
    failed = _report(results)
    removed = sum(1 for r in results if r.action == REMOVED)
    click.echo(f"\nRefreshed {len(results)} resource(s), {removed} removed")
    if failed:
        sys.exit(1)


@cli.command()
@common_options
def destroy(config_path, state_path, access_token, api_url, debug):
    """Delete every resource in state"""
    _start(debug)
    config = _load_config(config_path, required=False)
    engine = _configure(config, access_token, api_url)
    state_file = _load_state(state_path)
    try:
        results = engine.destroy(state_file)
    finally:
        state_file.save()
        engine.ctx.close()
    failed = _report(results)
    deleted = sum(1 for r in results if r.action == DELETE and not r.failed)
    click.echo(f"\nDestroyed {deleted} resource(s)")
    if failed:
        sys.exit(1)


@cli.command(name="import")
@click.argument("address")
@click.argument("import_id")
@common_options
def import_(address, import_id, config_path, state_path, access_token, api_url, debug):
    """Import an existing remote object into state at ADDRESS"""
    _start(debug)
    try:
        kind, type_name, _ = split_address(address)
    except SyntropyError as e:
        _fail(str(e))
    if kind != RESOURCE:
        _fail("Data sources cannot be imported")
    state_file = _load_state(state_path)
    if state_file.get(address) is not None:
        _fail(f"{address} is already managed in {state_path}")
    config = _load_config(config_path, required=False)
    engine = _configure(config, access_token, api_url)
    try:
        result: OperationResult = engine.import_resource(address, type_name, import_id, state_file)
    finally:
        engine.ctx.close()
    if _report([result]):
        sys.exit(1)
    state_file.save()
    click.echo("\nImport successful!")


@cli.command()
@common_options
def data(config_path, state_path, access_token, api_url, debug):
    """Read every data source in configuration and print the results as JSON"""
    _start(debug)
    config = _load_config(config_path)
    engine = _configure(config, access_token, api_url)
    output = {}
    failed = False
    try:
        for block in config.data:
            result = engine.read_data(block)
            if result.failed:
                failed = True
                _print_diagnostics(result.diagnostics)
                continue
            output[block.address] = result.state
    finally:
        engine.ctx.close()
    click.echo(json.dumps(output, indent=4, sort_keys=True))
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    cli()
