# Overview: Flask CLI commands for the sandbox API's demo data.

# backend/retailflow/sandbox/cli.py
# Commands Legend (run from the backend directory):
# - flask --app retailflow.sandbox sandbox seed-demo --output demo.json
#   Write the demo chart of accounts, parties and products to a JSON snapshot.
#   Start the server with RETAILFLOW_SANDBOX_DATA=demo.json to load it.
# - flask --app retailflow.sandbox sandbox accounts
#   Print the accounts the running configuration starts with.

import json

import click
from flask import current_app
from flask.cli import with_appcontext

from .store import SandboxStore, get_store, seed_demo


@click.group('sandbox')
def sandbox_group():
    """Sandbox remote API data commands."""


@sandbox_group.command('seed-demo')
@click.option('--output', type=click.Path(dir_okay=False, writable=True), default=None,
              help='Write the snapshot here instead of stdout')
def seed_demo_command(output):
    """Build the demo data set and dump it as JSON."""
    snapshot = seed_demo(SandboxStore()).snapshot()
    text = json.dumps(snapshot, indent=2)
    if output:
        with open(output, "w", encoding="utf-8") as fh:
            fh.write(text)
        click.echo(f"PASS Wrote demo data to {output} "
                   f"({len(snapshot['accounts'])} accounts, {len(snapshot['products'])} products)")
    else:
        click.echo(text)


@sandbox_group.command('accounts')
@with_appcontext
def list_accounts_command():
    """List accounts and balances in the app's store."""
    store = get_store()
    for account in store.list_accounts():
        flags = ",".join(f for f, on in (("cash", account["isCash"]), ("bank", account["isBank"])) if on)
        click.echo(f"{account['code']:<6} {account['name']:<24} {account['balance']:>12} {flags}")
    current_app.logger.debug("Listed %d sandbox accounts", len(store.accounts))


def register_commands(app):
    """Register sandbox CLI commands with the Flask app."""
    app.cli.add_command(sandbox_group)
