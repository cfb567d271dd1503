from typing import Dict, List, Optional, Protocol

from plugnpin.core.routing_config import ProxyHostOptions


class ProxyRegistry(Protocol):
    """Reverse proxy backend. Hosts are keyed by domain name."""

    @property
    def ip(self) -> str:
        """Address of the proxy itself, which DNS records point at."""
        ...

    def list_proxy_hosts(self) -> Dict[str, int]:
        """Map of domain -> backend identifier of the proxy host serving it."""
        ...

    def get_certificate_id(self, name: str) -> Optional[int]:
        ...

    def add_proxy_host(
        self,
        domain: str,
        forward_host: str,
        forward_port: int,
        options: ProxyHostOptions,
        certificate_id: Optional[int] = None,
    ) -> None:
        ...

    def delete_proxy_host(self, host_id: int) -> None:
        ...


class LocalDnsRegistry(Protocol):
    """DNS backend with distinct address and alias records."""

    def list_dns_records(self) -> Dict[str, str]:
        """Map of domain -> ip."""
        ...

    def add_dns_record(self, domain: str, ip: str) -> None:
        ...

    def delete_dns_record(self, domain: str) -> None:
        ...

    def list_cname_records(self) -> Dict[str, List[str]]:
        """Map of domain -> every target domain it aliases."""
        ...

    def add_cname_record(self, domain: str, target: str) -> None:
        ...

    def delete_cname_record(self, domain: str, target: str) -> None:
        ...


class RewriteRegistry(Protocol):
    """DNS backend where a single answer field holds either an ip or a domain."""

    def list_rewrites(self) -> Dict[str, str]:
        """Map of domain -> answer."""
        ...

    def add_rewrite(self, domain: str, answer: str) -> None:
        ...

    def delete_rewrite(self, domain: str, answer: str) -> None:
        ...
