from typing import Optional


# Labels
class LabelError(ValueError):
    """Raised when the plugNPiN labels on a container can't be turned into a routing config."""

class MissingRequiredLabelError(LabelError):
    """Raised when the address or domain label is absent. The container is not managed by us."""

class MalformedAddressError(LabelError):
    """Raised when the address label isn't in host:port form or the port isn't a valid integer."""

class InvalidSchemeError(LabelError):
    """Raised when the forwarding scheme label is neither http nor https."""

# Backends
class BackendError(RuntimeError):
    """Raised when a call against a DNS or proxy backend fails"""

    def __init__(self, backend: str, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"{backend}: {message}")
        self.backend = backend
        self.status_code = status_code

class AuthenticationError(BackendError):
    """Raised when a backend rejects our credentials, even after a fresh login"""

# Config
class ConfigurationError(ValueError):
    """Raised when the process environment is missing settings for an enabled backend"""
