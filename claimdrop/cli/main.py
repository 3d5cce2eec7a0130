"""
claimdrop CLI - Command Line Interface for the reward distributor

Main entry point for all CLI commands.
"""

import asyncio
import json
import logging
from pathlib import Path

import click

from claimdrop.utils.logger import get_logger, setup_logging

logger = get_logger("cli")


def _load_owners(path: Path) -> dict:
    """Read {item_id: owner} from JSON (object, or list of {itemId, owner})."""
    data = json.loads(path.read_text())
    if isinstance(data, dict):
        return {int(k): v for k, v in data.items()}
    return {int(row["itemId"]): row["owner"] for row in data}


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", default=None, help="JSON or TOML config file")
@click.option("--data-dir", default=None, help="Data directory (overrides config)")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, config_path, data_dir):
    """claimdrop - Merkle-committed per-item reward distribution"""
    from claimdrop.core.config import load_config

    config = load_config(config_path)
    if data_dir:
        config.data_dir = Path(data_dir).expanduser()

    level = logging.DEBUG if debug else config.log_level
    setup_logging(level=level, log_dir=str(config.log_dir), log_to_file=config.log_to_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# =============================================================================
# Snapshot Commands
# =============================================================================


@cli.command("snapshot")
@click.option("--owners", "owners_file", type=click.Path(exists=True, path_type=Path), default=None,
              help="JSON file of item ID -> owner")
@click.option("--rpc-url", default=None, help="EVM JSON-RPC endpoint (overrides config)")
@click.option("--contract", default=None, help="Item contract address (overrides config)")
@click.option("--reward", type=int, default=None, help="Reward per item (overrides config)")
@click.option("--out", type=click.Path(path_type=Path), default=None, help="Artifact output path")
@click.pass_context
def snapshot(ctx, owners_file, rpc_url, contract, reward, out):
    """Enumerate owners, build the Merkle root and proofs"""
    from claimdrop.core.commitment import build_snapshot
    from claimdrop.core.enumerator import (
        InMemoryItemRegistry,
        OwnershipEnumerator,
        RetryPolicy,
        RpcItemSource,
    )
    from claimdrop.core.errors import ClaimdropError
    from claimdrop.core.storage import StorageManager

    config = ctx.obj["config"]
    if reward is None:
        reward = config.reward_per_item
    retry = RetryPolicy(attempts=config.retry_attempts, base_delay=config.retry_base_delay)

    async def enumerate_owners():
        if owners_file:
            source = InMemoryItemRegistry.from_mapping(_load_owners(owners_file), config.first_item_id)
            enumerator = OwnershipEnumerator(source, config.batch_size, retry, config.first_item_id)
            return await enumerator.enumerate()

        url = rpc_url or config.rpc_url
        address = contract or config.item_contract
        if not url or not address:
            raise click.UsageError("Provide --owners, or --rpc-url and --contract")
        async with RpcItemSource(url, address, timeout=config.rpc_timeout) as source:
            enumerator = OwnershipEnumerator(source, config.batch_size, retry, config.first_item_id)
            return await enumerator.enumerate()

    try:
        owners = asyncio.run(enumerate_owners())
        tree, artifact = build_snapshot(owners.owners, reward)
    except ClaimdropError as exc:
        logger.error(f"Snapshot failed: {exc}")
        raise click.ClickException(str(exc))

    config.ensure_dirs()
    out = out or config.data_dir / f"snapshot-{artifact.root[2:14]}.json"
    artifact.save(out)

    storage = StorageManager(config.data_dir)
    storage.save_snapshot(artifact)
    storage.close()

    click.echo(f"✓ Snapshot built")
    click.echo(f"  Items: {artifact.item_count} ({len(owners.missing)} missing)")
    click.echo(f"  Recipients: {len(artifact.claims)}")
    click.echo(f"  Total: {artifact.total_amount}")
    click.echo(f"  Root: {artifact.root}")
    click.echo(f"  Saved to: {out}")


@cli.command("proof")
@click.argument("address")
@click.option("--artifact", "artifact_file", type=click.Path(exists=True, path_type=Path), default=None,
              help="Snapshot artifact (default: latest stored snapshot)")
@click.pass_context
def proof(ctx, address, artifact_file):
    """Print the amount and proof for an address"""
    from claimdrop.core.errors import ClaimdropError

    artifact = _load_artifact(ctx.obj["config"], artifact_file)
    try:
        entry = artifact.proof_for(address)
    except (ClaimdropError, ValueError) as exc:
        raise click.ClickException(str(exc))

    click.echo(json.dumps({
        "root": artifact.root,
        "address": address.lower(),
        "amount": entry.amount,
        "proof": entry.proof,
        "itemIds": entry.item_ids,
    }, indent=2))


@cli.command("verify")
@click.argument("address")
@click.option("--artifact", "artifact_file", type=click.Path(exists=True, path_type=Path), default=None,
              help="Snapshot artifact (default: latest stored snapshot)")
@click.pass_context
def verify(ctx, address, artifact_file):
    """Verify an address's proof against the artifact root"""
    from claimdrop.core.commitment import Leaf, verify_proof
    from claimdrop.core.errors import ClaimdropError
    from claimdrop.crypto import hex_to_bytes

    artifact = _load_artifact(ctx.obj["config"], artifact_file)
    try:
        entry = artifact.proof_for(address)
        leaf = Leaf(address, entry.amount)
    except (ClaimdropError, ValueError) as exc:
        raise click.ClickException(str(exc))

    if verify_proof(entry.proof_bytes(), leaf.hash(), hex_to_bytes(artifact.root)):
        click.echo(f"✅ Valid: {leaf.owner} -> {entry.amount}")
    else:
        click.echo(f"❌ Invalid proof for {leaf.owner}")
        ctx.exit(1)


def _load_artifact(config, artifact_file):
    from claimdrop.core.commitment import SnapshotArtifact
    from claimdrop.core.storage import StorageManager

    if artifact_file:
        return SnapshotArtifact.load(artifact_file)

    storage = StorageManager(config.data_dir)
    artifact = storage.latest_snapshot()
    storage.close()
    if artifact is None:
        raise click.ClickException("No stored snapshot; run `claimdrop snapshot` or pass --artifact")
    return artifact


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option("--holders", default=5, help="Number of item holders")
@click.option("--reward", default=100, help="Reward per item")
def demo(holders, reward):
    """Run an end-to-end in-memory distribution"""
    from claimdrop.core.claim import ClaimVerifier
    from claimdrop.core.commitment import publish_snapshot
    from claimdrop.core.emergency import EmergencyControl
    from claimdrop.core.enumerator import InMemoryItemRegistry, OwnershipEnumerator, RetryPolicy
    from claimdrop.core.errors import AlreadyClaimedError, PausedError
    from claimdrop.core.ledger import DistributionLedger, InMemoryToken
    from claimdrop.core.push import PushDistributor

    click.echo("=" * 60)
    click.echo("  CLAIMDROP - DEMO")
    click.echo("=" * 60)
    click.echo()

    authority = "0x" + "aa" * 20
    addresses = [f"0x{i + 1:040x}" for i in range(holders)]

    click.echo("📦 Minting items...")
    registry = InMemoryItemRegistry()
    for i, address in enumerate(addresses):
        for _ in range(i % 3 + 1):
            registry.mint(address)
    click.echo(f"  ✓ {len(registry)} items across {holders} holders")
    click.echo()

    token = InMemoryToken()
    ledger = DistributionLedger(authority, token)

    click.echo("🔎 Enumerating owners and publishing root...")
    enumerator = OwnershipEnumerator(registry, batch_size=4, retry=RetryPolicy(base_delay=0))
    tree, artifact = publish_snapshot(ledger, authority, enumerator, reward)
    click.echo(f"  ✓ Root: {artifact.root}")
    click.echo()

    token.mint(ledger.address, artifact.total_amount)
    ledger.add_reserved(authority, artifact.total_amount)
    claims = ClaimVerifier(ledger)
    push = PushDistributor(ledger, registry, reward_per_item=reward)
    emergency = EmergencyControl(ledger)
    click.echo(f"💰 Funded ledger: reserved={ledger.reserved}")
    click.echo()

    first = addresses[0]
    entry = artifact.proof_for(first)
    click.echo(f"🙋 {first[:12]}... claims {entry.amount}...")
    claims.claim(first, entry.proof, entry.amount)
    try:
        claims.claim(first, entry.proof, entry.amount)
    except AlreadyClaimedError:
        click.echo("  ✓ Replay rejected")
    click.echo()

    click.echo("⏸️  Pausing...")
    emergency.pause(authority)
    try:
        push.perform_round(authority)
    except PausedError:
        click.echo("  ✓ Round rejected while paused")
    emergency.resume(authority)
    click.echo()

    click.echo("🚚 Pushing remaining rewards...")
    result = push.perform_round(authority)
    click.echo(f"  ✓ Paid {result.recipients_paid} recipients ({result.total_paid}), skipped {len(result.skipped)}")
    click.echo()

    click.echo("📊 Final Statistics:")
    for key, value in ledger.stats().items():
        click.echo(f"  {key}: {value}")
    click.echo()
    click.echo("✅ Demo complete!")
