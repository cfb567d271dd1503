import socket
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests

from plugnpin.backends.http_client import BackendClient, CredentialHolder, error_message
from plugnpin.core.routing_config import ProxyHostOptions
from plugnpin.logger import logger
from plugnpin.utils.errors import AuthenticationError, BackendError


class NpmClient(BackendClient):
    """Nginx Proxy Manager API client."""

    name = "nginx-proxy-manager"

    def __init__(
        self,
        host: str,
        identity: str,
        secret: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(f"{host.rstrip('/')}/api", timeout=timeout, session=session)
        self.host = host
        self._identity = identity
        self._secret = secret
        self._ip: Optional[str] = None
        self.credentials = CredentialHolder(self._login)

    def _login(self) -> str:
        logger.info(f"[{self.name}] Logging in as {self._identity}")
        response = self._send(
            "POST", "/tokens", json={"identity": self._identity, "secret": self._secret}
        )
        token = None
        if response.status_code < 400:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            if isinstance(payload, dict):
                token = payload.get("token")
        if not token:
            raise AuthenticationError(
                self.name, f"login failed: {error_message(response)}", response.status_code
            )
        return token

    def login(self) -> None:
        self.credentials.get()

    def _auth_headers(self, token: Optional[str]) -> Dict[str, str]:
        return {"authorization": f"Bearer {token}"}

    @property
    def ip(self) -> str:
        """IPv4 address of the proxy manager host. DNS records point here."""
        if self._ip is None:
            url = self.host if "://" in self.host else f"http://{self.host}"
            hostname = urlparse(url).hostname
            if not hostname:
                raise BackendError(self.name, f"can't determine host from '{self.host}'")
            try:
                self._ip = socket.gethostbyname(hostname)
            except OSError as e:
                raise BackendError(self.name, f"failed to resolve {hostname}: {e}") from e
        return self._ip

    def list_proxy_hosts(self) -> Dict[str, int]:
        hosts = self.request("GET", "/nginx/proxy-hosts") or []
        existing: Dict[str, int] = {}
        for host in hosts:
            for domain in host.get("domain_names", []):
                existing[domain] = host["id"]
        return existing

    def get_certificate_id(self, name: str) -> Optional[int]:
        certificates = self.request("GET", "/nginx/certificates") or []
        for certificate in certificates:
            if certificate.get("nice_name") == name:
                return certificate["id"]
        return None

    def add_proxy_host(
        self,
        domain: str,
        forward_host: str,
        forward_port: int,
        options: ProxyHostOptions,
        certificate_id: Optional[int] = None,
    ) -> None:
        payload: Dict[str, Any] = {
            "domain_names": [domain],
            "forward_scheme": options.forward_scheme,
            "forward_host": forward_host,
            "forward_port": forward_port,
            "access_list_id": 0,
            "certificate_id": certificate_id or 0,
            "advanced_config": options.advanced_config,
            "allow_websocket_upgrade": options.allow_websocket_upgrade,
            "block_exploits": options.block_exploits,
            "caching_enabled": options.caching_enabled,
            "http2_support": options.http2_support,
            "hsts_enabled": options.hsts_enabled,
            "hsts_subdomains": options.hsts_subdomains,
            "ssl_forced": options.ssl_forced,
            "locations": [],
            "meta": {},
        }
        try:
            self.request("POST", "/nginx/proxy-hosts", json=payload)
        except BackendError as e:
            if e.status_code == 400 and "already in use" in str(e):
                logger.debug(f"[{self.name}] Proxy host for {domain} already exists")
                return
            raise
        logger.info(f"[{self.name}] Added proxy host {domain} -> {forward_host}:{forward_port}")

    def delete_proxy_host(self, host_id: int) -> None:
        try:
            self.request("DELETE", f"/nginx/proxy-hosts/{host_id}")
        except BackendError as e:
            if e.status_code == 404:
                logger.debug(f"[{self.name}] Proxy host {host_id} already gone")
                return
            raise
        logger.info(f"[{self.name}] Deleted proxy host {host_id}")
