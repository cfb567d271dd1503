from typing import Dict, Optional, Tuple

import requests

from plugnpin.backends.http_client import BackendClient
from plugnpin.logger import logger
from plugnpin.utils.errors import BackendError

ALREADY_EXISTS_MARKERS = ("already exists", "duplicate")
NOT_FOUND_MARKERS = ("not found", "does not exist", "no such")


def _mentions(error: BackendError, markers: Tuple[str, ...]) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in markers)


class AdguardHomeClient(BackendClient):
    """AdGuard Home DNS rewrite client. Uses static basic auth, so there is nothing to refresh."""

    name = "adguard-home"

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(f"{host.rstrip('/')}/control", timeout=timeout, session=session)
        self.auth = (username, password)

    def list_rewrites(self) -> Dict[str, str]:
        rewrites = self.request("GET", "/rewrite/list") or []
        return {r["domain"]: r["answer"] for r in rewrites if "domain" in r and "answer" in r}

    def add_rewrite(self, domain: str, answer: str) -> None:
        try:
            self.request(
                "POST", "/rewrite/add", json={"domain": domain, "answer": answer, "enabled": True}
            )
        except BackendError as e:
            if e.status_code == 400 and _mentions(e, ALREADY_EXISTS_MARKERS):
                logger.debug(f"[{self.name}] DNS rewrite {domain} -> {answer} already exists")
                return
            raise
        logger.info(f"[{self.name}] Added DNS rewrite {domain} -> {answer}")

    def delete_rewrite(self, domain: str, answer: str) -> None:
        try:
            self.request("POST", "/rewrite/delete", json={"domain": domain, "answer": answer})
        except BackendError as e:
            if e.status_code in (400, 404) and _mentions(e, NOT_FOUND_MARKERS):
                logger.debug(f"[{self.name}] DNS rewrite {domain} -> {answer} already gone")
                return
            raise
        logger.info(f"[{self.name}] Deleted DNS rewrite {domain} -> {answer}")
