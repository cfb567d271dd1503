"""Pytest configuration and fixtures."""

import json
from typing import Any, Dict, List, Optional, Tuple

import pytest
import requests

from plugnpin.core.label_parser import IP_LABEL, URL_LABEL
from plugnpin.core.routing_config import ProxyHostOptions


def make_response(status_code: int = 200, payload: Any = None) -> requests.Response:
    """Build a real requests.Response with a JSON body."""
    response = requests.Response()
    response.status_code = status_code
    response._content = b"" if payload is None else json.dumps(payload).encode()
    response.encoding = "utf-8"
    return response


class FakeNpm:
    """In-memory proxy registry recording every call."""

    def __init__(self, ip: str = "10.0.0.2", hosts: Optional[Dict[str, int]] = None, certificates=None):
        self.ip = ip
        self.hosts: Dict[str, int] = dict(hosts or {})
        self.certificates: Dict[str, int] = dict(certificates or {})
        self.added: List[Tuple[str, str, int, ProxyHostOptions, Optional[int]]] = []
        self.deleted: List[int] = []
        self.fail_with: Optional[Exception] = None
        self._next_id = 100

    def list_proxy_hosts(self) -> Dict[str, int]:
        if self.fail_with:
            raise self.fail_with
        return dict(self.hosts)

    def get_certificate_id(self, name: str) -> Optional[int]:
        return self.certificates.get(name)

    def add_proxy_host(self, domain, forward_host, forward_port, options, certificate_id=None):
        self.added.append((domain, forward_host, forward_port, options, certificate_id))
        self._next_id += 1
        self.hosts[domain] = self._next_id

    def delete_proxy_host(self, host_id: int) -> None:
        self.deleted.append(host_id)
        self.hosts = {d: i for d, i in self.hosts.items() if i != host_id}


class FakePihole:
    def __init__(self, records=None, cnames=None):
        self.records: Dict[str, str] = dict(records or {})
        self.cnames: Dict[str, List[str]] = {
            d: [t] if isinstance(t, str) else list(t) for d, t in (cnames or {}).items()
        }
        self.calls: List[Tuple[str, ...]] = []
        self.fail_with: Optional[Exception] = None

    def _check(self):
        if self.fail_with:
            raise self.fail_with

    def list_dns_records(self):
        self._check()
        return dict(self.records)

    def add_dns_record(self, domain, ip):
        self.calls.append(("add_dns_record", domain, ip))
        self.records[domain] = ip

    def delete_dns_record(self, domain):
        self.calls.append(("delete_dns_record", domain))
        self.records.pop(domain, None)

    def list_cname_records(self):
        self._check()
        return {d: list(ts) for d, ts in self.cnames.items()}

    def add_cname_record(self, domain, target):
        self.calls.append(("add_cname_record", domain, target))
        self.cnames.setdefault(domain, []).append(target)

    def delete_cname_record(self, domain, target):
        self.calls.append(("delete_cname_record", domain, target))
        targets = self.cnames.get(domain, [])
        if target in targets:
            targets.remove(target)
        if not targets:
            self.cnames.pop(domain, None)


class FakeAdguardHome:
    def __init__(self, rewrites=None):
        self.rewrites: Dict[str, str] = dict(rewrites or {})
        self.calls: List[Tuple[str, ...]] = []

    def list_rewrites(self):
        return dict(self.rewrites)

    def add_rewrite(self, domain, answer):
        self.calls.append(("add_rewrite", domain, answer))
        self.rewrites[domain] = answer

    def delete_rewrite(self, domain, answer):
        self.calls.append(("delete_rewrite", domain, answer))
        if self.rewrites.get(domain) == answer:
            del self.rewrites[domain]


@pytest.fixture
def npm():
    return FakeNpm()


@pytest.fixture
def pihole():
    return FakePihole()


@pytest.fixture
def adguard_home():
    return FakeAdguardHome()


@pytest.fixture
def base_labels():
    return {
        IP_LABEL: "10.0.0.5:9000",
        URL_LABEL: "svc.example",
    }
