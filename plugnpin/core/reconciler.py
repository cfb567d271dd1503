from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from plugnpin.core.container_event import ContainerAction, ContainerEvent
from plugnpin.core.label_parser import parse_labels
from plugnpin.core.routing_config import RoutingConfig
from plugnpin.interfaces.registries import LocalDnsRegistry, ProxyRegistry, RewriteRegistry
from plugnpin.logger import logger
from plugnpin.utils.errors import BackendError, LabelError, MissingRequiredLabelError


class Backend(str, Enum):
    NGINX_PROXY_MANAGER = "nginx-proxy-manager"
    PIHOLE = "pihole"
    ADGUARD_HOME = "adguard-home"


class Outcome(str, Enum):
    CREATED = "created"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    FAILED = "failed"


Handler = Callable[[RoutingConfig], Outcome]


class Reconciler:
    """
    Maps a container transition onto create/delete calls against each configured backend.

    Holds no state between calls: every decision is made after re-reading what
    the backend currently has. Backends without a client are skipped, and a
    failure in one backend never stops the others from being attempted.
    """

    def __init__(
        self,
        npm_client: Optional[ProxyRegistry] = None,
        pihole_client: Optional[LocalDnsRegistry] = None,
        adguard_home_client: Optional[RewriteRegistry] = None,
        dry_run: bool = False,
    ) -> None:
        self.npm_client = npm_client
        self.pihole_client = pihole_client
        self.adguard_home_client = adguard_home_client
        self.dry_run = dry_run

    def handle_event(self, event: ContainerEvent, log_skips: bool = False) -> Dict[Backend, Outcome]:
        try:
            config = parse_labels(event.labels)
        except MissingRequiredLabelError as e:
            if log_skips:
                logger.info(f"[reconciler] Skipping container '{event.name}': {e}")
            return {}
        except LabelError as e:
            logger.error(f"[reconciler] ERROR handling container '{event.name}': {e}")
            return {}

        return self.process(event.name, event.action, config)

    def process(
        self, name: str, action: ContainerAction, config: RoutingConfig
    ) -> Dict[Backend, Outcome]:
        msg = f"[reconciler] Handling {action.value} of container '{name}': {config.render()}"
        if self.dry_run:
            logger.info(f"{msg}. In dry run mode, not doing anything. Resolved config: {config.model_dump()}")
            return {}
        logger.info(msg)

        results: Dict[Backend, Outcome] = {}
        for backend, handler in self._handlers(action):
            try:
                outcome = handler(config)
            except Exception as e:
                logger.error(
                    f"[reconciler] {backend.value}: failed to {action.value} {config.domain} "
                    f"for container '{name}': {e}"
                )
                outcome = Outcome.FAILED
            else:
                logger.debug(f"[reconciler] {backend.value}: {config.domain} {outcome.value}")
            results[backend] = outcome
        return results

    def _handlers(self, action: ContainerAction) -> List[Tuple[Backend, Handler]]:
        if action is ContainerAction.START:
            candidates = [
                (Backend.NGINX_PROXY_MANAGER, self.npm_client, self._add_proxy_host),
                (Backend.PIHOLE, self.pihole_client, self._add_pihole_record),
                (Backend.ADGUARD_HOME, self.adguard_home_client, self._add_adguard_home_rewrite),
            ]
        else:
            candidates = [
                (Backend.NGINX_PROXY_MANAGER, self.npm_client, self._delete_proxy_host),
                (Backend.PIHOLE, self.pihole_client, self._delete_pihole_record),
                (Backend.ADGUARD_HOME, self.adguard_home_client, self._delete_adguard_home_rewrite),
            ]
        return [(backend, handler) for backend, client, handler in candidates if client is not None]

    def _proxy_ip(self) -> str:
        if self.npm_client is None:
            raise BackendError(Backend.NGINX_PROXY_MANAGER.value, "no proxy configured to point DNS records at")
        return self.npm_client.ip

    # Nginx Proxy Manager

    def _add_proxy_host(self, config: RoutingConfig) -> Outcome:
        existing = self.npm_client.list_proxy_hosts()
        if config.domain in existing:
            return Outcome.UNCHANGED

        certificate_id = None
        certificate_name = config.proxy_options.certificate_name
        if certificate_name:
            try:
                certificate_id = self.npm_client.get_certificate_id(certificate_name)
            except BackendError as e:
                logger.warning(f"[reconciler] Failed to look up certificate '{certificate_name}': {e}")
            else:
                if certificate_id is None:
                    logger.warning(
                        f"[reconciler] Certificate '{certificate_name}' not found, "
                        f"adding {config.domain} without one"
                    )

        self.npm_client.add_proxy_host(
            config.domain,
            config.address,
            config.port,
            config.proxy_options,
            certificate_id=certificate_id,
        )
        return Outcome.CREATED

    def _delete_proxy_host(self, config: RoutingConfig) -> Outcome:
        existing = self.npm_client.list_proxy_hosts()
        if config.domain not in existing:
            return Outcome.UNCHANGED
        self.npm_client.delete_proxy_host(existing[config.domain])
        return Outcome.DELETED

    # Pi-hole

    def _add_pihole_record(self, config: RoutingConfig) -> Outcome:
        target = config.pihole_options.target_domain
        if target:
            if config.domain in self.pihole_client.list_cname_records():
                return Outcome.UNCHANGED
            self.pihole_client.add_cname_record(config.domain, target)
        else:
            if config.domain in self.pihole_client.list_dns_records():
                return Outcome.UNCHANGED
            self.pihole_client.add_dns_record(config.domain, self._proxy_ip())
        return Outcome.CREATED

    def _delete_pihole_record(self, config: RoutingConfig) -> Outcome:
        target = config.pihole_options.target_domain
        if target:
            # Only our pair goes; other aliases of the domain stay
            if target not in self.pihole_client.list_cname_records().get(config.domain, []):
                return Outcome.UNCHANGED
            self.pihole_client.delete_cname_record(config.domain, target)
        else:
            if config.domain not in self.pihole_client.list_dns_records():
                return Outcome.UNCHANGED
            self.pihole_client.delete_dns_record(config.domain)
        return Outcome.DELETED

    # AdGuard Home

    def _add_adguard_home_rewrite(self, config: RoutingConfig) -> Outcome:
        existing = self.adguard_home_client.list_rewrites()
        if config.domain in existing:
            return Outcome.UNCHANGED
        # Rewrites don't distinguish A from CNAME, so the target domain simply replaces the ip
        answer = config.adguard_home_options.target_domain or self._proxy_ip()
        self.adguard_home_client.add_rewrite(config.domain, answer)
        return Outcome.CREATED

    def _delete_adguard_home_rewrite(self, config: RoutingConfig) -> Outcome:
        existing = self.adguard_home_client.list_rewrites()
        if config.domain not in existing:
            return Outcome.UNCHANGED
        answer = config.adguard_home_options.target_domain or existing[config.domain]
        self.adguard_home_client.delete_rewrite(config.domain, answer)
        return Outcome.DELETED
