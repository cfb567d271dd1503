from enum import Enum
from typing import Dict, Optional


class ContainerAction(str, Enum):
    START = "start"
    DIE = "die"

    @classmethod
    def from_docker(cls, action: Optional[str]) -> Optional["ContainerAction"]:
        """
        Normalize a Docker event action. "stop", "kill" and "die" all mean the
        container is going away. Anything else is not ours to handle.
        """
        if action == "start":
            return cls.START
        if action in {"stop", "kill", "die"}:
            return cls.DIE
        return None


class ContainerEvent:
    def __init__(
        self,
        id: Optional[str],
        action: ContainerAction,
        name: Optional[str] = None,
        labels: Optional[Dict[str, str]] = None,
        host: str = "",
    ) -> None:
        self.id: str = id or "<unknown>"
        self.name: str = (name or "<unknown>").lstrip("/")
        self.action: ContainerAction = action
        self.labels: Dict[str, str] = labels or {}
        self.host: str = host

    def __repr__(self) -> str:
        return f"ContainerEvent(name={self.name!r}, action={self.action.value!r})"
