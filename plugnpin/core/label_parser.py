from typing import Mapping, Optional

from plugnpin.core.routing_config import (
    AdguardHomeOptions,
    PiholeOptions,
    ProxyHostOptions,
    RoutingConfig,
)
from plugnpin.utils.errors import (
    InvalidSchemeError,
    MalformedAddressError,
    MissingRequiredLabelError,
)

LABEL_PREFIX = "plugNPiN"

IP_LABEL = f"{LABEL_PREFIX}.ip"
URL_LABEL = f"{LABEL_PREFIX}.url"

NPM_ADVANCED_CONFIG_LABEL = f"{LABEL_PREFIX}.npmOptions.advancedConfig"
NPM_BLOCK_EXPLOITS_LABEL = f"{LABEL_PREFIX}.npmOptions.blockExploits"
NPM_CACHING_ENABLED_LABEL = f"{LABEL_PREFIX}.npmOptions.cachingEnabled"
NPM_CERTIFICATE_NAME_LABEL = f"{LABEL_PREFIX}.npmOptions.certificateName"
NPM_HTTP2_SUPPORT_LABEL = f"{LABEL_PREFIX}.npmOptions.http2Support"
NPM_HSTS_ENABLED_LABEL = f"{LABEL_PREFIX}.npmOptions.hstsEnabled"
NPM_HSTS_SUBDOMAINS_LABEL = f"{LABEL_PREFIX}.npmOptions.hstsSubdomains"
NPM_SCHEME_LABEL = f"{LABEL_PREFIX}.npmOptions.scheme"
NPM_SSL_FORCED_LABEL = f"{LABEL_PREFIX}.npmOptions.forceSsl"
NPM_WEBSOCKETS_SUPPORT_LABEL = f"{LABEL_PREFIX}.npmOptions.websocketsSupport"

PIHOLE_TARGET_DOMAIN_LABEL = f"{LABEL_PREFIX}.piholeOptions.targetDomain"
ADGUARD_HOME_TARGET_DOMAIN_LABEL = f"{LABEL_PREFIX}.adguardHomeOptions.targetDomain"

# A container missing any of these is invisible to us
REQUIRED_LABELS = [IP_LABEL, URL_LABEL]

ALLOWED_SCHEMES = {"http", "https"}

_TRUE_VALUES = {"1", "t", "true"}
_FALSE_VALUES = {"0", "f", "false"}


def parse_bool(value: Optional[str]) -> Optional[bool]:
    """
    Permissive boolean parsing. Returns None when the value isn't recognised.
    """
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


def _bool_label(labels: Mapping[str, str], key: str) -> bool:
    return parse_bool(labels.get(key)) or False


def _block_exploits(labels: Mapping[str, str]) -> bool:
    # Absent label means on; a present but empty or unparsable label means off.
    if NPM_BLOCK_EXPLOITS_LABEL not in labels:
        return True
    return _bool_label(labels, NPM_BLOCK_EXPLOITS_LABEL)


def _target_domain(labels: Mapping[str, str], key: str) -> Optional[str]:
    value = labels.get(key, "").strip()
    return value or None


def parse_address(value: str) -> tuple[str, int]:
    parts = value.split(":")
    if len(parts) == 1:
        raise MalformedAddressError(f"missing ':' in value of '{IP_LABEL}' label")
    if len(parts) > 2:
        raise MalformedAddressError(
            f"value of '{IP_LABEL}' label must contain a single ':', got '{value}'"
        )

    host, raw_port = parts
    if not host:
        raise MalformedAddressError(f"missing host before ':' in value of '{IP_LABEL}' label")

    try:
        port = int(raw_port)
    except ValueError:
        raise MalformedAddressError(
            f"value after ':' in value of '{IP_LABEL}' label must be an integer, got '{raw_port}'"
        ) from None

    if not 1 <= port <= 65535:
        raise MalformedAddressError(
            f"port in value of '{IP_LABEL}' label must be between 1 and 65535, got {port}"
        )
    return host, port


def parse_labels(labels: Mapping[str, str]) -> RoutingConfig:
    """
    Turn the plugNPiN labels of a container into a RoutingConfig.

    Raises MissingRequiredLabelError when the container isn't ours to manage,
    MalformedAddressError or InvalidSchemeError when it is but the labels are wrong.
    """
    for label in REQUIRED_LABELS:
        if label not in labels:
            raise MissingRequiredLabelError(f"missing {label} label")

    address, port = parse_address(labels[IP_LABEL])
    domain = labels[URL_LABEL]

    scheme = labels.get(NPM_SCHEME_LABEL, "http").lower()
    if scheme not in ALLOWED_SCHEMES:
        raise InvalidSchemeError(
            f"value of '{NPM_SCHEME_LABEL}' label must be one of 'http', 'https', got '{scheme}'"
        )

    proxy_options = ProxyHostOptions(
        forward_scheme=scheme,
        advanced_config=labels.get(NPM_ADVANCED_CONFIG_LABEL, ""),
        allow_websocket_upgrade=_bool_label(labels, NPM_WEBSOCKETS_SUPPORT_LABEL),
        block_exploits=_block_exploits(labels),
        caching_enabled=_bool_label(labels, NPM_CACHING_ENABLED_LABEL),
        certificate_name=labels.get(NPM_CERTIFICATE_NAME_LABEL, ""),
        http2_support=_bool_label(labels, NPM_HTTP2_SUPPORT_LABEL),
        hsts_enabled=_bool_label(labels, NPM_HSTS_ENABLED_LABEL),
        hsts_subdomains=_bool_label(labels, NPM_HSTS_SUBDOMAINS_LABEL),
        ssl_forced=_bool_label(labels, NPM_SSL_FORCED_LABEL),
    )

    return RoutingConfig(
        address=address,
        port=port,
        domain=domain,
        proxy_options=proxy_options,
        pihole_options=PiholeOptions(
            target_domain=_target_domain(labels, PIHOLE_TARGET_DOMAIN_LABEL),
        ),
        adguard_home_options=AdguardHomeOptions(
            target_domain=_target_domain(labels, ADGUARD_HOME_TARGET_DOMAIN_LABEL),
        ),
    )
