import threading
from typing import Any, Dict, List, Optional, Tuple

import requests

from plugnpin.backends.http_client import BackendClient, CredentialHolder, error_message
from plugnpin.logger import logger
from plugnpin.utils.errors import AuthenticationError, BackendError


def raw_dns_record_to_records(raw: str) -> List[Tuple[str, str]]:
    """
    Parse a Pi-hole hosts entry ("ip domain [domain ...]") into (domain, ip) pairs.
    """
    parts = raw.split()
    if len(parts) < 2:
        raise ValueError(f"got bad raw dns record from pihole: {raw!r}")
    ip = parts[0]
    return [(domain, ip) for domain in parts[1:]]


def dns_record_to_raw(domain: str, ip: str) -> str:
    return f"{ip} {domain}"


def raw_cname_record_to_record(raw: str) -> Tuple[str, str]:
    """
    Parse a Pi-hole cnameRecords entry ("domain,target[,ttl]") into (domain, target).
    """
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ValueError(f"got bad raw cname record from pihole: {raw!r}")
    return parts[0], parts[1]


def cname_record_to_raw(domain: str, target: str) -> str:
    return f"{domain},{target}"


class PiholeClient(BackendClient):
    """Pi-hole v6 API client. Local DNS records live in the dns section of its config."""

    name = "pihole"

    def __init__(
        self,
        host: str,
        password: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(f"{host.rstrip('/')}/api", timeout=timeout, session=session)
        self._password = password
        self.credentials = CredentialHolder(self._login)
        # Writes replace a whole list in the config, so they must not interleave
        self._write_lock = threading.Lock()

    def _login(self) -> str:
        logger.info(f"[{self.name}] Logging in")
        response = self._send("POST", "/auth", json={"password": self._password})
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        session = payload.get("session", {}) if isinstance(payload, dict) else {}
        sid = session.get("sid")
        if response.status_code >= 400 or not sid:
            message = session.get("message") or error_message(response)
            raise AuthenticationError(self.name, f"login failed: {message}", response.status_code)
        return sid

    def login(self) -> None:
        self.credentials.get()

    def _auth_headers(self, token: Optional[str]) -> Dict[str, str]:
        return {"X-FTL-SID": token or ""}

    def _get_dns_config(self) -> Dict[str, Any]:
        payload = self.request("GET", "/config")
        if not isinstance(payload, dict):
            raise BackendError(self.name, f"unexpected config response: {payload!r}")
        return payload.get("config", {}).get("dns", {})

    def _patch_dns_config(self, dns: Dict[str, Any]) -> None:
        self.request("PATCH", "/config", json={"config": {"dns": dns}})

    def _get_raw_hosts(self) -> List[str]:
        return list(self._get_dns_config().get("hosts") or [])

    def _get_raw_cname_records(self) -> List[str]:
        return list(self._get_dns_config().get("cnameRecords") or [])

    def list_dns_records(self) -> Dict[str, str]:
        records: Dict[str, str] = {}
        for raw in self._get_raw_hosts():
            try:
                for domain, ip in raw_dns_record_to_records(raw):
                    records[domain] = ip
            except ValueError as e:
                logger.warning(f"[{self.name}] Skipping entry: {e}")
        return records

    def add_dns_record(self, domain: str, ip: str) -> None:
        with self._write_lock:
            hosts = self._get_raw_hosts()
            for raw in hosts:
                if domain in raw.split()[1:]:
                    logger.debug(f"[{self.name}] DNS record for {domain} already exists")
                    return
            hosts.append(dns_record_to_raw(domain, ip))
            self._patch_dns_config({"hosts": hosts})
        logger.info(f"[{self.name}] Added DNS record {domain} -> {ip}")

    def delete_dns_record(self, domain: str) -> None:
        with self._write_lock:
            hosts = self._get_raw_hosts()
            remaining: List[str] = []
            for raw in hosts:
                parts = raw.split()
                if domain not in parts[1:]:
                    remaining.append(raw)
                    continue
                # An entry can name several domains, only drop ours
                others = [d for d in parts[1:] if d != domain]
                if others:
                    remaining.append(" ".join([parts[0], *others]))

            if remaining == hosts:
                logger.debug(f"[{self.name}] No DNS record for {domain}, nothing to delete")
                return
            self._patch_dns_config({"hosts": remaining})
        logger.info(f"[{self.name}] Deleted DNS record for {domain}")

    def list_cname_records(self) -> Dict[str, List[str]]:
        records: Dict[str, List[str]] = {}
        for raw in self._get_raw_cname_records():
            try:
                domain, target = raw_cname_record_to_record(raw)
            except ValueError as e:
                logger.warning(f"[{self.name}] Skipping entry: {e}")
                continue
            records.setdefault(domain, []).append(target)
        return records

    def add_cname_record(self, domain: str, target: str) -> None:
        with self._write_lock:
            cnames = self._get_raw_cname_records()
            for raw in cnames:
                try:
                    existing_domain, existing_target = raw_cname_record_to_record(raw)
                except ValueError:
                    continue
                if existing_domain == domain and existing_target == target:
                    logger.debug(f"[{self.name}] CNAME record {domain} -> {target} already exists")
                    return
            cnames.append(cname_record_to_raw(domain, target))
            self._patch_dns_config({"cnameRecords": cnames})
        logger.info(f"[{self.name}] Added CNAME record {domain} -> {target}")

    def delete_cname_record(self, domain: str, target: str) -> None:
        with self._write_lock:
            cnames = self._get_raw_cname_records()
            remaining: List[str] = []
            for raw in cnames:
                try:
                    if raw_cname_record_to_record(raw) == (domain, target):
                        continue
                except ValueError:
                    pass
                remaining.append(raw)

            if len(remaining) == len(cnames):
                logger.debug(f"[{self.name}] No CNAME record {domain} -> {target}, nothing to delete")
                return
            self._patch_dns_config({"cnameRecords": remaining})
        logger.info(f"[{self.name}] Deleted CNAME record {domain} -> {target}")
