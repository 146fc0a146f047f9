# cms_publisher/cli.py
import json

import click
from flask.cli import AppGroup

from cms_publisher.application.publishing.orchestrator import (
    get_publishable_count,
    is_publish_needed,
    publish_root,
    publish_site,
)

publish_cli = AppGroup("publish", help="Promote draft content to published.")


def _echo(payload):
    click.echo(json.dumps(payload, indent=2, sort_keys=True))


@publish_cli.command("site")
@click.option("--actor", "actor_id", default=None, help="Actor id written to the audit log.")
def publish_site_command(actor_id):
    """Publish pages, every collection and site settings."""
    result = publish_site(actor_id=actor_id)
    _echo(result.to_dict())
    if not result.success:
        raise SystemExit(1)


@publish_cli.command("collection")
@click.argument("collection_id")
@click.option("--item", "item_ids", multiple=True, help="Publish only these items. Repeatable.")
@click.option("--actor", "actor_id", default=None, help="Actor id written to the audit log.")
def publish_collection_command(collection_id, item_ids, actor_id):
    """Publish one collection."""
    result = publish_root(collection_id, list(item_ids) or None, actor_id=actor_id)
    _echo(result.to_dict())
    if not result.success:
        raise SystemExit(1)


@publish_cli.command("status")
@click.argument("collection_id")
def publish_status_command(collection_id):
    """Show whether a collection has unpublished changes."""
    _echo({
        "collection_id": collection_id,
        "needs_publishing": is_publish_needed(collection_id),
        "publishable_count": get_publishable_count(collection_id),
    })
