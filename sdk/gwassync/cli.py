# SPDX-License-Identifier: Apache-2.0
"""Click CLI entry point. Install with: pip install . then gwassync --help."""
import logging
from datetime import datetime, timezone

import click

from gwassync.actions import filter_datasets, process_dataset, summarize, upload_dataset
from gwassync.client import LedgerClient
from gwassync.crypto import encrypt_dataset, parse_vector
from gwassync.exceptions import APIError
from gwassync.records import DatasetDraft
from gwassync.store import HttpKeyValueStore
from gwassync.synchronizer import DatasetSynchronizer


def _make_synchronizer(api_url: str) -> DatasetSynchronizer:
    return DatasetSynchronizer(HttpKeyValueStore(api_url))


def _make_client(api_url: str, institution: str) -> LedgerClient:
    return LedgerClient(api_url, institution)


def _echo_status(status) -> None:
    click.echo(f"[{status.status}] {status.message}", err=status.status != "success")


@click.group()
@click.option("--api-url", default="http://localhost:8000", envvar="GWAS_API_URL", help="Ledger API base URL")
@click.option("--institution", default="", envvar="GWAS_INSTITUTION", help="Institution identity (wallet address)")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, api_url, institution, verbose):
    """FHE-GWAS client: encrypted genomic datasets and association analysis."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url
    ctx.obj["institution"] = institution.lower()


@cli.command()
@click.option("--search", default="", help="Filter by study type or institution")
@click.pass_context
def datasets(ctx, search):
    """List datasets from the key/value index, newest first."""
    items = _make_synchronizer(ctx.obj["api_url"]).list_datasets()
    if search:
        items = filter_datasets(items, search)
    if not items:
        click.echo("No encrypted datasets found")
        return
    for d in items:
        created = datetime.fromtimestamp(d.timestamp, tz=timezone.utc).strftime("%Y-%m-%d")
        mine = " *" if d.owned_by(ctx.obj["institution"]) else ""
        click.echo(f"#{d.id[:6]}  {d.study_type:<20} {d.institution[:6]}...{d.institution[-4:]}  {created}  {d.status}{mine}")


@cli.command()
@click.pass_context
def summary(ctx):
    """Processed / pending / error counts."""
    s = summarize(_make_synchronizer(ctx.obj["api_url"]).list_datasets())
    click.echo(f"total={s.total} processed={s.processed} pending={s.pending} error={s.error}")


@cli.command()
@click.option("--study-type", required=True, help="Study type, e.g. 'Type 2 diabetes'")
@click.option("--description", default="", help="Free-text description")
@click.option("--genomic-data", required=True, help="Genomic data (sealed before storage)")
@click.pass_context
def upload(ctx, study_type, description, genomic_data):
    """Seal and store a dataset record, then append it to the index."""
    draft = DatasetDraft(study_type=study_type, description=description, genomic_data=genomic_data)
    status = upload_dataset(_make_synchronizer(ctx.obj["api_url"]), draft, ctx.obj["institution"], notify=_echo_status)
    if not status.ok:
        ctx.exit(1)


@cli.command()
@click.argument("dataset_id")
@click.pass_context
def process(ctx, dataset_id):
    """Mark one of your pending datasets as processed."""
    status = process_dataset(_make_synchronizer(ctx.obj["api_url"]), dataset_id, ctx.obj["institution"], notify=_echo_status)
    if not status.ok:
        ctx.exit(1)


@cli.command()
@click.option("--genotypes", required=True, help="Comma-separated allele dosages (0,1,2)")
@click.option("--phenotypes", required=True, help="Comma-separated case/control flags (1,0)")
@click.pass_context
def submit(ctx, genotypes, phenotypes):
    """Encrypt locally under the ledger's public context and submit."""
    client = _make_client(ctx.obj["api_url"], ctx.obj["institution"])
    try:
        g = parse_vector(genotypes, {0, 1, 2})
        p = parse_vector(phenotypes, {0, 1})
        enc_g, enc_p = encrypt_dataset(client.public_context(), g, p)
        dataset_id = client.submit(enc_g, enc_p)
    except (ValueError, APIError) as e:
        raise click.ClickException(str(e))
    click.echo(f"Submitted dataset {dataset_id} ({len(g)} samples)")


@cli.command()
@click.argument("dataset_id", type=int)
@click.pass_context
def analyze(ctx, dataset_id):
    """Request the association analysis of one of your datasets."""
    try:
        request_id = _make_client(ctx.obj["api_url"], ctx.obj["institution"]).request_analysis(dataset_id)
    except APIError as e:
        raise click.ClickException(str(e))
    click.echo(f"Analysis requested: {request_id}")


@cli.command()
@click.argument("dataset_id", type=int)
@click.pass_context
def reveal(ctx, dataset_id):
    """Request decryption of an analyzed dataset's result."""
    try:
        request_id = _make_client(ctx.obj["api_url"], ctx.obj["institution"]).request_reveal(dataset_id)
    except APIError as e:
        raise click.ClickException(str(e))
    click.echo(f"Reveal requested: {request_id}")


@cli.command()
@click.argument("dataset_id", type=int)
@click.pass_context
def result(ctx, dataset_id):
    """Show dataset status and, once revealed, the association result."""
    try:
        d = _make_client(ctx.obj["api_url"], ctx.obj["institution"]).get_dataset(dataset_id)
    except APIError as e:
        raise click.ClickException(str(e))
    click.echo(f"Dataset {d['id']} ({d['institution']}): {d['status']}")
    if d.get("result"):
        r = d["result"]
        click.echo(f"  {r['association_test']}: statistic={r['statistic']:.4f} p={r['p_value']:.4g} OR={r['odds_ratio']:.4f}")


@cli.command()
@click.option("--oracle-token", required=True, envvar="GWAS_ORACLE_TOKEN", help="Oracle callback token")
@click.pass_context
def relay(ctx, oracle_token):
    """Deliver every pending oracle decryption to the ledger."""
    try:
        delivered = _make_client(ctx.obj["api_url"], ctx.obj["institution"]).relay(oracle_token)
    except APIError as e:
        raise click.ClickException(str(e))
    for d in delivered:
        click.echo(f"{d['request_id']} {d['callback']}: {'ok' if d['ok'] else d.get('error', 'failed')}")
    click.echo(f"{len(delivered)} request(s) relayed")


def main():
    """Entry point for console_scripts."""
    cli(obj={})


if __name__ == "__main__":
    main()
