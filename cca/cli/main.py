"""
CCA CLI - Command Line Interface for the Continuous Clearing Auction

Main entry point for all CLI commands.
"""

import json
import click
from pathlib import Path

from cca.core.config import load_config
from cca.core.errors import AuctionError
from cca.core.fixed_point import Q96
from cca.utils.logger import configure_from, get_logger

logger = get_logger("cli")

DEMO_SCENARIO = {
    "name": "demo",
    "setup": {
        "total_supply": 1000,
        "creator": "0x" + "cc" * 20,
        "params": {
            "floor_price": Q96,
            "tick_spacing": Q96,
            "start_block": 0,
            "end_block": 100,
            "claim_block": 110,
            "steps": [{"mps": 100_000, "block_delta": 100}],
            "funds_recipient": "0x" + "f0" * 20,
            "units_recipient": "0x" + "e0" * 20,
        },
    },
    "bidders": [
        {
            "address": "0x" + "aa" * 20,
            "label": "alice",
            "balance": 5000,
            "bids": [{"at_block": 10, "amount": 1500, "side": "input", "price": {"type": "tick", "value": 3}}],
        },
        {
            "address": "0x" + "bb" * 20,
            "label": "bob",
            "balance": 5000,
            "bids": [{"at_block": 10, "amount": 1000, "side": "input", "price": {"type": "tick", "value": 2}}],
        },
    ],
    "actions": [
        {"at_block": 50, "method": "checkpoint"},
        {"at_block": 100, "method": "exit_all"},
        {"at_block": 110, "method": "claim_all"},
        {"at_block": 110, "method": "sweep_currency"},
        {"at_block": 110, "method": "sweep_unsold_units"},
    ],
    "assertions": [{"at_block": 110, "type": "auction", "is_graduated": True}],
}


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True), help="Engine config (JSON/TOML)")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, config_path):
    """Continuous Clearing Auction - gradual single-price token sales"""
    engine_config = load_config(config_path)
    try:
        configure_from(engine_config, debug=debug)
    except ValueError as e:
        raise click.BadParameter(str(e))

    ctx.ensure_object(dict)
    ctx.obj["engine_config"] = engine_config


# =============================================================================
# Schedule Commands
# =============================================================================


@cli.group()
def schedule():
    """Issuance schedule encoding"""
    pass


@schedule.command("encode")
@click.argument("steps", nargs=-1, required=True)
def schedule_encode(steps):
    """Pack MPS:BLOCKS pairs into step bytes (hex)"""
    from cca.core.auction.steps import encode_steps

    pairs = []
    for step in steps:
        try:
            mps, blocks = step.split(":")
            pairs.append((int(mps), int(blocks)))
        except ValueError:
            raise click.BadParameter(f"Step must look like MPS:BLOCKS, got {step!r}")

    try:
        click.echo("0x" + encode_steps(pairs).hex())
    except AuctionError as e:
        raise click.ClickException(str(e))


@schedule.command("decode")
@click.argument("data")
@click.option("--start-block", default=0, type=int, help="Block the schedule starts at")
def schedule_decode(data, start_block):
    """Unpack step bytes (hex) into a readable table"""
    from cca.core.auction.steps import decode_steps

    try:
        steps = decode_steps(data)
    except AuctionError as e:
        raise click.ClickException(str(e))

    block = start_block
    total = 0
    click.echo(f"{'#':>3}  {'mps':>10}  {'blocks':>8}  range")
    click.echo("-" * 44)
    for index, (mps, blocks) in enumerate(steps):
        click.echo(f"{index:>3}  {mps:>10}  {blocks:>8}  [{block}, {block + blocks})")
        block += blocks
        total += mps * blocks
    click.echo("-" * 44)
    click.echo(f"  Total: {total} mps over {block - start_block} blocks ({total / 1e7:.2%})")


# =============================================================================
# Simulation Commands
# =============================================================================


def _run_scenario(scenario: dict, engine_config) -> bool:
    from cca.core.simulation import ScenarioRunner

    logger.debug(f"Scenario {scenario.get('name')}: {len(scenario.get('bidders', []))} bidder(s)")
    try:
        result = ScenarioRunner(scenario, engine_config).run(on_step=lambda line: click.echo(f"  {line}"))
    except AuctionError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}")

    stats = result.auction.stats()
    click.echo()
    click.echo("📊 Final State:")
    click.echo(f"  Clearing price: {stats['clearing_price'] / Q96:.4f} (Q96 {stats['clearing_price']})")
    click.echo(f"  Sold: {stats['total_cleared']} / {stats['total_supply']}")
    click.echo(f"  Raised: {stats['currency_raised']}")
    click.echo(f"  Checkpoints: {stats['checkpoints']}, ticks: {stats['ticks']}, bids: {stats['bids']}")
    click.echo()

    if result.passed:
        click.echo(f"✅ {result.name}: all expectations met")
    else:
        click.echo(f"❌ {result.name}: {len(result.failures)} failure(s)")
        for failure in result.failures:
            click.echo(f"   {failure}")
    return result.passed


@cli.command("simulate")
@click.argument("scenario_path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def simulate(ctx, scenario_path):
    """Replay a JSON scenario against a fresh auction"""
    try:
        scenario = json.loads(Path(scenario_path).read_text())
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid scenario file: {e}")

    click.echo(f"▶ Running {scenario.get('name', scenario_path)}")
    if not _run_scenario(scenario, ctx.obj["engine_config"]):
        ctx.exit(1)


@cli.command("demo")
@click.pass_context
def demo(ctx):
    """Run a built-in two-bidder auction"""
    click.echo("=" * 60)
    click.echo("  CONTINUOUS CLEARING AUCTION - DEMO")
    click.echo("=" * 60)
    click.echo()
    click.echo("📦 1000 units over blocks [0, 100), floor 1.0, tick 1.0")
    click.echo("  alice: 1500 currency up to 3.0 | bob: 1000 currency up to 2.0")
    click.echo()

    if not _run_scenario(DEMO_SCENARIO, ctx.obj["engine_config"]):
        ctx.exit(1)


if __name__ == "__main__":
    cli()
