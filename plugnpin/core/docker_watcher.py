import threading
from typing import Any, Callable, Dict, List, Optional

import docker
from docker.models.containers import Container

from plugnpin.core.container_event import ContainerAction, ContainerEvent
from plugnpin.core.label_parser import REQUIRED_LABELS
from plugnpin.logger import logger

# "die" fires whenever a container exits, whether it was stopped, killed or crashed
SUBSCRIBED_ACTIONS = ["start", "die"]


class DockerWatcher:
    def __init__(self, host: str = "", client: Optional[docker.DockerClient] = None) -> None:
        self.host = host
        logger.debug(f"[docker_watcher] Initializing Docker watcher for {self.label}")
        if client is not None:
            self.client = client
        elif host:
            self.client = docker.DockerClient(base_url=host)
        else:
            self.client = docker.from_env()
        self.running = True
        self._stream: Any = None
        self._lock = threading.Lock()

    @property
    def label(self) -> str:
        return self.host or "local docker"

    def list_relevant_containers(self) -> List[ContainerEvent]:
        """
        Current containers carrying the required labels, as synthetic start events.
        """
        logger.info(
            f"[docker_watcher] Getting containers on {self.label} with labels: {', '.join(REQUIRED_LABELS)}"
        )
        containers = self.client.containers.list(
            filters={"label": REQUIRED_LABELS}, ignore_removed=True
        )
        return [self._build_container_event(c) for c in containers]

    def watch(self, callback: Callable[[ContainerEvent], None]) -> None:
        """
        Block on the Docker event stream and invoke the callback for every start/die
        of a labelled container. Returns once stop() closes the stream.
        """
        filters = {
            "type": "container",
            "event": SUBSCRIBED_ACTIONS,
            "label": REQUIRED_LABELS,
        }
        stream = self.client.events(decode=True, filters=filters)
        with self._lock:
            self._stream = stream
            if not self.running:
                stream.close()
                return

        logger.info(f"[docker_watcher] Listening for Docker events on {self.label}...")
        try:
            for event in stream:
                if not self.running:
                    break
                container_event = self._parse_event(event)
                if container_event is None:
                    continue
                logger.debug(
                    f"[docker_watcher] Received {container_event.action.value} for container {container_event.name}"
                )
                callback(container_event)
        except Exception:
            # Closing the stream from stop() surfaces here as a read error
            if self.running:
                raise
        finally:
            logger.info(f"[docker_watcher] Stopping stream of Docker events on {self.label}")

    def _parse_event(self, event: Dict[str, Any]) -> Optional[ContainerEvent]:
        if event.get("Type") != "container":
            return None

        action = ContainerAction.from_docker(event.get("Action") or event.get("status"))
        if action is None:
            return None

        actor = event.get("Actor") or {}
        attributes: Dict[str, str] = dict(actor.get("Attributes") or {})
        name = attributes.get("name")
        if not name:
            logger.debug(f"[docker_watcher] Skipping event for container with no name: {actor.get('ID')}")
            return None

        # Event attributes carry the container labels alongside name/image
        return ContainerEvent(
            id=actor.get("ID") or event.get("id"),
            action=action,
            name=name,
            labels=attributes,
            host=self.host,
        )

    def _build_container_event(self, container: Container) -> ContainerEvent:
        return ContainerEvent(
            id=container.id,
            action=ContainerAction.START,
            name=getattr(container, "name", "<unknown>"),
            labels=getattr(container, "labels", {}) or {},
            host=self.host,
        )

    def stop(self) -> None:
        logger.info(f"[docker_watcher] Stopping Docker watcher for {self.label}")
        with self._lock:
            self.running = False
            if self._stream is not None:
                self._stream.close()
