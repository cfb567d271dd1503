import signal
import sys
from typing import Any, List

import click

from plugnpin.backends.adguard_home import AdguardHomeClient
from plugnpin.backends.npm import NpmClient
from plugnpin.backends.pihole import PiholeClient
from plugnpin.config import Settings, load_settings
from plugnpin.core.docker_watcher import DockerWatcher
from plugnpin.core.reconciler import Reconciler
from plugnpin.core.sync_engine import SyncEngine
from plugnpin.logger import logger
from plugnpin.utils.errors import BackendError, ConfigurationError


def build_reconciler(settings: Settings, dry_run: bool) -> Reconciler:
    if dry_run:
        # No backend clients at all, so nothing can reach the network
        return Reconciler(dry_run=True)

    settings.validate_backends()

    npm_client = NpmClient(
        settings.nginx_proxy_manager_host,
        settings.nginx_proxy_manager_username,
        settings.nginx_proxy_manager_password,
        timeout=settings.request_timeout,
    )
    npm_client.login()

    pihole_client = None
    if not settings.pihole_disabled:
        pihole_client = PiholeClient(
            settings.pihole_host,
            settings.pihole_password,
            timeout=settings.request_timeout,
        )
        pihole_client.login()

    adguard_home_client = None
    if not settings.adguard_home_disabled:
        adguard_home_client = AdguardHomeClient(
            settings.adguard_home_host,
            settings.adguard_home_username,
            settings.adguard_home_password,
            timeout=settings.request_timeout,
        )

    return Reconciler(
        npm_client=npm_client,
        pihole_client=pihole_client,
        adguard_home_client=adguard_home_client,
    )


def build_watchers(settings: Settings) -> List[DockerWatcher]:
    watchers = []
    for host in settings.docker_host_list:
        try:
            watchers.append(DockerWatcher(host))
        except Exception as e:
            logger.error(f"[main] Failed to create docker client for '{host or 'local docker'}': {e}")
    return watchers


@click.command()
@click.option(
    "--dry-run",
    "-d",
    is_flag=True,
    default=False,
    help="Simulates the process of adding DNS records and proxy hosts without applying "
    "changes to Pi-hole, AdGuard Home or Nginx Proxy Manager.",
)
def main(dry_run: bool) -> None:
    settings = load_settings()
    dry_run = dry_run or settings.dry_run

    try:
        reconciler = build_reconciler(settings, dry_run)
    except (ConfigurationError, BackendError) as e:
        logger.error(f"[main] {e}")
        sys.exit(1)

    watchers = build_watchers(settings)
    if not watchers:
        logger.error("[main] No usable docker hosts, exiting")
        sys.exit(1)

    engine = SyncEngine(reconciler, watchers, run_interval=settings.run_interval)

    if settings.run_interval == 0:
        logger.info("[main] RUN_INTERVAL is 0, will run once")
        engine.run_once()
        return

    logger.info(f"[main] Will run every {settings.run_interval:g}s")

    def shutdown_handler(signum: int, frame: Any) -> None:
        logger.info("[main] Shutdown signal received, exiting gracefully.")
        engine.stop()

    # Register signal handlers
    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    engine.run()


if __name__ == "__main__":
    main()
