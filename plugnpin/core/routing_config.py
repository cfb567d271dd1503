from typing import Optional

from pydantic import BaseModel, Field


class ProxyHostOptions(BaseModel):
    """Optional Nginx Proxy Manager behaviours for a proxy host."""

    forward_scheme: str = "http"
    advanced_config: str = ""
    allow_websocket_upgrade: bool = False
    block_exploits: bool = True
    caching_enabled: bool = False
    certificate_name: str = ""
    http2_support: bool = False
    hsts_enabled: bool = False
    hsts_subdomains: bool = False
    ssl_forced: bool = False

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }


class DnsOptions(BaseModel):
    # When set, an alias (CNAME) record pointing at target_domain is managed
    # instead of an address record pointing at the proxy.
    target_domain: Optional[str] = None

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }


class PiholeOptions(DnsOptions):
    pass


class AdguardHomeOptions(DnsOptions):
    pass


class RoutingConfig(BaseModel):
    address: str
    port: int = Field(ge=1, le=65535)
    domain: str
    proxy_options: ProxyHostOptions = Field(default_factory=ProxyHostOptions)
    pihole_options: PiholeOptions = Field(default_factory=PiholeOptions)
    adguard_home_options: AdguardHomeOptions = Field(default_factory=AdguardHomeOptions)

    def render(self) -> str:
        return f"{self.domain} -> {self.address}:{self.port}"

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }
