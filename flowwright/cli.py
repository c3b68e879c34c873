"""Command line entry point: ``flowwright``."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click

from flowwright.compiler.types import BuildMode, BuildResult
from flowwright.config import AppConfig, load_config, validate_config
from flowwright.core.builder import FlowBuilder
from flowwright.core.errors import FlowwrightError
from flowwright.core.types import Flow
from flowwright.core.validator import validate
from flowwright.remote.client import FLOW_STATUSES, KlaviyoClient
from flowwright.remote.creator import APIFlowCreator, flow_url
from flowwright.utils.log import setup_logging

logger = logging.getLogger(__name__)

api_key_option = click.option("-k", "--api-key", default=None, help="Klaviyo API key (overrides .env).")


def _load_flow(path: str) -> Flow:
    try:
        document = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Failed to read flow definition {path}: {e}")
    if not isinstance(document, dict):
        raise click.ClickException(f"Flow definition {path} must be a JSON object")
    return Flow.from_dict(document)


def _client(config: AppConfig) -> KlaviyoClient:
    if not config.api_key:
        raise click.ClickException("KLAVIYO_API_KEY is required. Set it in .env or pass --api-key.")
    return KlaviyoClient(
        config.api_key,
        revision=config.api_revision,
        base_url=config.base_url,
        timeout=config.page_timeout / 1000,
    )


def _print_result(result: BuildResult) -> None:
    status = "succeeded" if result.success else "failed"
    click.echo(f"\nBuild {status} ({result.mode.value}): {result.flow_name}")
    if result.flow_id:
        click.echo(f"  Flow ID: {result.flow_id}")
    if result.flow_url:
        click.echo(f"  URL:     {result.flow_url}")
    click.echo(f"  Actions: {result.actions_created}")
    click.echo(f"  Time:    {result.duration_ms / 1000:.1f}s")
    for key, value in result.settings_applied.items():
        click.echo(f"  {key}: {value}")
    for warning in result.warnings:
        click.echo(f"  WARNING: {warning}")
    for error in result.errors:
        click.echo(f"  ERROR: {error}", err=True)
    for shot in result.screenshots:
        click.echo(f"  Screenshot: {shot}")


@click.group()
def cli():
    """Build Klaviyo flows from JSON definitions via the API or browser automation."""


@cli.command()
@click.option("-f", "--flow", "flow_path", required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("-m", "--mode", type=click.Choice([m.value for m in BuildMode]), default=None)
@api_key_option
@click.option("--headless/--no-headless", default=None, help="Run the browser headless.")
@click.option("--slow-mo", type=int, default=None, help="Slow browser actions down by N ms.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def build(ctx, flow_path, mode, api_key, headless, slow_mo, verbose):
    """Build a flow from a JSON definition."""
    config = load_config(mode=mode, api_key=api_key, headless=headless, slow_mo=slow_mo)
    setup_logging("debug" if verbose else config.log_level)

    flow = _load_flow(flow_path)
    logger.info('Loaded flow definition "%s" (%d actions)', flow.name, len(flow.actions))

    config_errors = validate_config(config)
    if config_errors:
        for error in config_errors:
            click.echo(f"Configuration error: {error}", err=True)
        ctx.exit(1)

    try:
        result = asyncio.run(FlowBuilder(config).build(flow))
    except FlowwrightError as e:
        raise click.ClickException(str(e))

    _print_result(result)
    ctx.exit(0 if result.success else 1)


@cli.command(name="validate")
@click.option("-f", "--flow", "flow_path", required=True, type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def validate_command(ctx, flow_path):
    """Validate a flow definition without building it."""
    flow = _load_flow(flow_path)
    result = validate(flow)
    for error in result.errors:
        click.echo(f"ERROR: {error}")
    for warning in result.warnings:
        click.echo(f"WARNING: {warning}")
    if not result.valid:
        click.echo(f"Flow \"{flow.name}\" is invalid ({len(result.errors)} error(s)).")
        ctx.exit(1)
    click.echo(f"Flow \"{flow.name}\" is valid ({len(flow.actions)} actions).")


@cli.command()
@click.option("--flow-id", required=True, help="Klaviyo flow ID to verify.")
@click.option("-f", "--flow", "flow_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Definition to compare the created flow against.")
@api_key_option
@click.pass_context
def verify(ctx, flow_id, flow_path, api_key):
    """Verify a flow was created correctly."""
    config = load_config(api_key=api_key)
    setup_logging(config.log_level)
    flow = _load_flow(flow_path) if flow_path else None

    async def _run():
        async with _client(config) as client:
            return await APIFlowCreator(client).verify(flow_id, flow)

    try:
        result = asyncio.run(_run())
    except FlowwrightError as e:
        raise click.ClickException(f"Failed to verify flow: {e}")

    click.echo(f"Name:    {result.flow_name}")
    click.echo(f"ID:      {result.flow_id}")
    click.echo(f"Actions: {result.actual_actions} (expected {result.expected_actions})")
    for mismatch in result.mismatches:
        click.echo(f"MISMATCH: {mismatch}")
    click.echo(f"URL:     {flow_url(result.flow_id)}")
    ctx.exit(0 if result.success else 1)


@cli.command(name="list-flows")
@click.option("-s", "--status", type=click.Choice(FLOW_STATUSES), default=None)
@api_key_option
def list_flows(status, api_key):
    """List flows in the account."""
    config = load_config(api_key=api_key)
    setup_logging(config.log_level)

    async def _run():
        async with _client(config) as client:
            return await client.list_flows(status)

    try:
        flows = asyncio.run(_run())
    except FlowwrightError as e:
        raise click.ClickException(f"Failed to list flows: {e}")

    click.echo(f"Found {len(flows)} flow(s):")
    for i, entry in enumerate(flows, 1):
        attrs = entry.get("attributes") or {}
        click.echo(f"  {i}. {attrs.get('name')}")
        click.echo(f"     ID: {entry.get('id')} | Status: {attrs.get('status')} | Trigger: {attrs.get('trigger_type')}")


@cli.command(name="set-status")
@click.option("--flow-id", required=True)
@click.option("--status", required=True, type=click.Choice(FLOW_STATUSES))
@api_key_option
def set_status(flow_id, status, api_key):
    """Change a flow's status (draft, manual, live)."""
    config = load_config(api_key=api_key)
    setup_logging(config.log_level)

    async def _run():
        async with _client(config) as client:
            await client.update_flow_status(flow_id, status)

    try:
        asyncio.run(_run())
    except FlowwrightError as e:
        raise click.ClickException(f"Failed to update flow status: {e}")
    click.echo(f"Flow {flow_id} status updated to: {status}")


@cli.command(name="test-connection")
@api_key_option
@click.pass_context
def test_connection(ctx, api_key):
    """Test the Klaviyo API connection."""
    config = load_config(api_key=api_key)
    setup_logging(config.log_level)

    async def _run():
        async with _client(config) as client:
            return await client.test_connection()

    if asyncio.run(_run()):
        click.echo("Klaviyo API connection successful.")
    else:
        click.echo("Klaviyo API connection failed. Check your API key.", err=True)
        ctx.exit(1)


if __name__ == "__main__":
    cli()
