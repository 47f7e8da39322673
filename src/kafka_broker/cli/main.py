"""kafka-broker CLI: operate the Kafka Broker control plane.

Commands:
    names             Show the topic, path and address derived for a Broker
    artifact show     Decode a data-plane artifact file and list its Brokers
    artifact convert  Re-encode a data-plane artifact in another format
    reconcile         Reconcile a Broker manifest
    finalize          Finalize (delete) a Broker manifest

``reconcile`` and ``finalize`` talk to the cluster configured in
``kafka-broker.yaml`` unless ``--dry-run`` is given, in which case they run
against in-memory backends and an optional local artifact file.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
import yaml

from kafka_broker import __version__
from kafka_broker.config import ControlPlaneConfig, load_config
from kafka_broker.contract.codec import DataPlaneFormat, decode, encode
from kafka_broker.controller import (
    ControlPlane,
    build_control_plane,
    build_in_memory_control_plane,
)
from kafka_broker.errors import BrokerReconcileError, MalformedArtifactError
from kafka_broker.models import BrokerResource, Brokers, ConditionStatus
from kafka_broker.reconciler.broker import broker_path
from kafka_broker.topics.provisioner import topic_name

FORMAT_CHOICES = click.Choice([f.value for f in DataPlaneFormat])


def _resolve_cfg(config_path: str | None) -> ControlPlaneConfig:
    """Load kafka-broker.yaml: explicit path must exist, discovery never errors."""
    if config_path is not None:
        try:
            return load_config(config_path)
        except (FileNotFoundError, ValueError) as e:
            click.echo(f"Error loading config: {e}", err=True)
            sys.exit(1)
    try:
        return load_config()
    except Exception:
        return ControlPlaneConfig()


def _load_manifest(manifest: str) -> BrokerResource:
    path = Path(manifest)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        click.echo(f"Error reading manifest: {e}", err=True)
        sys.exit(1)

    if not isinstance(data, dict) or data.get("kind", "Broker") != "Broker":
        click.echo(f"Error: {path} is not a Broker manifest", err=True)
        sys.exit(1)

    try:
        resource = BrokerResource.from_manifest(data)
    except (KeyError, ValueError) as e:
        click.echo(f"Error: invalid Broker manifest {path}: {e}", err=True)
        sys.exit(1)

    if not resource.uid:
        click.echo(f"Error: {path} has no metadata.uid", err=True)
        sys.exit(1)
    return resource


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Kafka Broker control plane: topics and shared data-plane config for Brokers."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# --- names command ---


@cli.command()
@click.argument("namespace")
@click.argument("name")
@click.option("--config", "config_path", default=None, help="Path to kafka-broker.yaml")
def names(namespace: str, name: str, config_path: str | None) -> None:
    """Show the topic, path and address of Broker NAMESPACE/NAME."""
    cfg = _resolve_cfg(config_path)
    address_host = f"{cfg.ingress_service}.{cfg.system_namespace}.svc.{cfg.cluster_domain}"
    path = broker_path(namespace, name)
    click.echo(f"  topic:   {topic_name(namespace, name, cfg.topic_prefix)}")
    click.echo(f"  path:    {path}")
    click.echo(f"  address: http://{address_host}{path}")


# --- artifact commands ---


@cli.group()
def artifact() -> None:
    """Inspect and convert data-plane artifacts."""


def _print_brokers(brokers: Brokers) -> None:
    click.echo(f"volumeGeneration: {brokers.volume_generation}")
    if not brokers.brokers:
        click.echo("No brokers.")
        return
    for b in brokers.brokers:
        click.echo(f"  {b.path or '-':<40} id={b.id}")
        click.echo(f"      topic: {b.topic}")
        click.echo(f"      bootstrapServers: {b.bootstrap_servers}")
        if b.dead_letter_sink:
            click.echo(f"      deadLetterSink: {b.dead_letter_sink}")
        click.echo(f"      triggers: {len(b.triggers)}")
    click.echo(f"\n{len(brokers.brokers)} broker(s).")


@artifact.command("show")
@click.argument("artifact_file")
@click.option("--format", "fmt", type=FORMAT_CHOICES, default=None, help="Artifact format")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.option("--config", "config_path", default=None, help="Path to kafka-broker.yaml")
def artifact_show(
    artifact_file: str,
    fmt: str | None,
    json_output: bool,
    config_path: str | None,
) -> None:
    """Decode ARTIFACT_FILE and list its Brokers."""
    fmt = fmt or _resolve_cfg(config_path).data_plane_format
    path = Path(artifact_file)
    if not path.is_file():
        click.echo(f"Artifact not found: {path}", err=True)
        sys.exit(1)

    try:
        brokers = decode(path.read_bytes(), fmt)
    except MalformedArtifactError as e:
        click.echo(click.style("MALFORMED", fg="red", bold=True) + f"  {e}", err=True)
        if e.partial is not None and e.partial.brokers:
            click.echo(f"Salvaged {len(e.partial.brokers)} broker(s):", err=True)
            _print_brokers(e.partial)
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(brokers.model_dump(mode="json", by_alias=True), indent=2))
    else:
        _print_brokers(brokers)


@artifact.command("convert")
@click.argument("source")
@click.argument("destination")
@click.option("--from", "from_fmt", type=FORMAT_CHOICES, required=True, help="Format of SOURCE")
@click.option("--to", "to_fmt", type=FORMAT_CHOICES, required=True, help="Format of DESTINATION")
def artifact_convert(source: str, destination: str, from_fmt: str, to_fmt: str) -> None:
    """Re-encode artifact SOURCE into DESTINATION."""
    src = Path(source)
    if not src.is_file():
        click.echo(f"Artifact not found: {src}", err=True)
        sys.exit(1)

    try:
        brokers = decode(src.read_bytes(), from_fmt)
    except MalformedArtifactError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    Path(destination).write_bytes(encode(brokers, to_fmt))
    click.echo(
        f"Converted {len(brokers.brokers)} broker(s) at generation "
        f"{brokers.volume_generation}: {from_fmt} -> {to_fmt}"
    )


# --- reconcile / finalize commands ---


def _plane(
    cfg: ControlPlaneConfig,
    dry_run: bool,
    bootstrap_servers: str | None,
    artifact_file: str | None,
) -> ControlPlane:
    if not dry_run:
        try:
            plane = build_control_plane(cfg)
        except ImportError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        plane.sync_defaults()
        if bootstrap_servers:
            plane.defaults.set_bootstrap_servers(bootstrap_servers)
        return plane

    plane = build_in_memory_control_plane(cfg)
    if bootstrap_servers:
        plane.defaults.set_bootstrap_servers(bootstrap_servers)
    if artifact_file and Path(artifact_file).is_file():
        plane.backends["storage"].put(
            cfg.system_namespace,
            cfg.data_plane_config_map,
            Path(artifact_file).read_bytes(),
        )
    return plane


def _save_artifact(plane: ControlPlane, artifact_file: str | None) -> None:
    if not artifact_file:
        return
    stored = plane.backends["storage"].get(*plane.store.key.split("/", 1))
    if stored is not None and stored.data is not None:
        Path(artifact_file).write_bytes(stored.data)


def _print_status(resource: BrokerResource) -> None:
    colors = {
        ConditionStatus.TRUE: "green",
        ConditionStatus.FALSE: "red",
        ConditionStatus.UNKNOWN: "yellow",
    }
    for condition in resource.status.conditions:
        line = f"  {condition.type:<20} " + click.style(
            f"{condition.status}", fg=colors[condition.status],
        )
        if condition.message:
            line += f"  {condition.message}"
        click.echo(line)
    if resource.status.address:
        click.echo(f"  address: {resource.status.address}")


_plane_options = [
    click.option("--config", "config_path", default=None, help="Path to kafka-broker.yaml"),
    click.option("--dry-run", is_flag=True, help="Use in-memory backends instead of a cluster"),
    click.option(
        "--bootstrap-servers", default=None,
        help="Default bootstrap servers (comma separated)",
    ),
    click.option(
        "--artifact", "artifact_file", default=None,
        help="Artifact file read and written back in --dry-run mode",
    ),
]


def plane_options(fn: Any) -> Any:
    for option in reversed(_plane_options):
        fn = option(fn)
    return fn


@cli.command()
@click.argument("manifest")
@plane_options
@click.option("--json-output", is_flag=True, help="Output status as JSON")
def reconcile(
    manifest: str,
    config_path: str | None,
    dry_run: bool,
    bootstrap_servers: str | None,
    artifact_file: str | None,
    json_output: bool,
) -> None:
    """Reconcile the Broker in MANIFEST."""
    cfg = _resolve_cfg(config_path)
    resource = _load_manifest(manifest)
    plane = _plane(cfg, dry_run, bootstrap_servers, artifact_file)

    failed: BrokerReconcileError | None = None
    try:
        plane.reconciler.reconcile(resource)
    except BrokerReconcileError as e:
        failed = e

    if dry_run:
        _save_artifact(plane, artifact_file)

    if json_output:
        click.echo(json.dumps(resource.status.model_dump(mode="json"), indent=2))
    else:
        verdict = click.style("FAILED", fg="red", bold=True) if failed else click.style(
            "READY", fg="green", bold=True,
        )
        click.echo(f"{verdict}  broker {resource.key}")
        _print_status(resource)

    if failed is not None:
        click.echo(f"Error: {failed}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("manifest")
@plane_options
def finalize(
    manifest: str,
    config_path: str | None,
    dry_run: bool,
    bootstrap_servers: str | None,
    artifact_file: str | None,
) -> None:
    """Remove the Broker in MANIFEST from the data plane and delete its topic."""
    cfg = _resolve_cfg(config_path)
    resource = _load_manifest(manifest)
    plane = _plane(cfg, dry_run, bootstrap_servers, artifact_file)

    try:
        plane.reconciler.finalize(resource)
    except BrokerReconcileError as e:
        click.echo(click.style("FAILED", fg="red", bold=True) + f"  broker {resource.key}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if dry_run:
        _save_artifact(plane, artifact_file)
    click.echo(click.style("FINALIZED", fg="green", bold=True) + f"  broker {resource.key}")
