# catalog_sync/cli/run_sync.py
import asyncio
import logging
import sys
from datetime import datetime

import click

from catalog_sync.core.config import get_settings
from catalog_sync.core.exceptions import ConfigError, ShopifyAPIError
from catalog_sync.services.sync_services import build_sync_service, run_sync

logger = logging.getLogger(__name__)


async def _list_channels():
    service = build_sync_service(get_settings())
    return await service.shopify.list_channels()


@click.command()
@click.option('--channel', 'channels', multiple=True, help='Shopify publication GID to publish to (repeatable)')
@click.option('--list-channels', is_flag=True, help='Print available Shopify sales channels and exit')
@click.option('--quiet', is_flag=True, help='Only print the summary, not every log line')
def main(channels, list_channels, quiet):
    """Sync the inFlow catalog into Shopify"""
    from catalog_sync.core import logging_config  # noqa: F401

    if list_channels:
        try:
            found = asyncio.run(_list_channels())
        except (ConfigError, ShopifyAPIError) as e:
            click.echo(f"Error fetching channels: {e}", err=True)
            sys.exit(1)
        for channel in found:
            future = " (supports scheduled publishing)" if channel.supports_future_publishing else ""
            click.echo(f"{channel.id}\t{channel.name}{future}")
        return

    start_time = datetime.now()
    logger.info(f"Starting catalog sync at {start_time}")

    result = asyncio.run(run_sync(list(channels) or None))

    if not quiet:
        for line in result.logs:
            click.echo(line)

    summary = result.summary
    click.echo("\nSync finished!")
    click.echo(f"Total products: {summary.total}")
    click.echo(f"Created: {summary.created}")
    click.echo(f"Updated: {summary.updated}")
    click.echo(f"Published: {summary.published}")
    click.echo(f"Failed: {summary.failed}")
    logger.info(f"Completed catalog sync in {datetime.now() - start_time}")

    if not result.success:
        sys.exit(1)


if __name__ == '__main__':
    main()
