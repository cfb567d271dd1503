"""Unit tests for the Docker watcher."""

from unittest.mock import MagicMock

import pytest

from plugnpin.core.container_event import ContainerAction, ContainerEvent
from plugnpin.core.docker_watcher import DockerWatcher
from plugnpin.core.label_parser import IP_LABEL, REQUIRED_LABELS, URL_LABEL


class FakeStream:
    def __init__(self, events):
        self._events = list(events)
        self.closed = False

    def __iter__(self):
        for event in self._events:
            if self.closed:
                return
            yield event

    def close(self):
        self.closed = True


class BrokenStream:
    """Stream whose read fails, as happens when the socket is closed underneath it."""

    def __init__(self, on_iter=None):
        self._on_iter = on_iter
        self.closed = False

    def __iter__(self):
        if self._on_iter:
            self._on_iter()
        raise OSError("connection closed")

    def close(self):
        self.closed = True


def docker_event(action, name="svc", labels=None, type_="container"):
    attributes = {"name": name, "image": "busybox"}
    attributes.update(labels or {})
    return {
        "Type": type_,
        "Action": action,
        "Actor": {"ID": "abc123", "Attributes": attributes},
    }


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def watcher(client):
    return DockerWatcher("tcp://docker:2375", client=client)


class TestContainerAction:
    def test_start(self):
        assert ContainerAction.from_docker("start") is ContainerAction.START

    @pytest.mark.parametrize("action", ["stop", "kill", "die"])
    def test_die_class(self, action):
        assert ContainerAction.from_docker(action) is ContainerAction.DIE

    @pytest.mark.parametrize("action", ["create", "destroy", "pause", None])
    def test_other_actions(self, action):
        assert ContainerAction.from_docker(action) is None


class TestContainerEvent:
    def test_name_is_normalized(self):
        event = ContainerEvent(id="abc", action=ContainerAction.START, name="/my-container")
        assert event.name == "my-container"

    def test_defaults(self):
        event = ContainerEvent(id=None, action=ContainerAction.DIE)
        assert event.id == "<unknown>"
        assert event.name == "<unknown>"
        assert event.labels == {}


class TestListRelevantContainers:
    def test_filters_on_required_labels(self, watcher, client):
        container = MagicMock()
        container.id = "abc"
        container.name = "svc"
        container.labels = {IP_LABEL: "10.0.0.5:9000", URL_LABEL: "svc.example"}
        client.containers.list.return_value = [container]

        events = watcher.list_relevant_containers()

        client.containers.list.assert_called_once_with(
            filters={"label": REQUIRED_LABELS}, ignore_removed=True
        )
        assert len(events) == 1
        assert events[0].action is ContainerAction.START
        assert events[0].name == "svc"
        assert events[0].labels[URL_LABEL] == "svc.example"
        assert events[0].host == "tcp://docker:2375"

    def test_listing_errors_propagate(self, watcher, client):
        client.containers.list.side_effect = RuntimeError("daemon down")
        with pytest.raises(RuntimeError):
            watcher.list_relevant_containers()


class TestWatch:
    def test_subscribes_with_filters(self, watcher, client):
        client.events.return_value = FakeStream([])
        watcher.watch(MagicMock())

        client.events.assert_called_once_with(
            decode=True,
            filters={"type": "container", "event": ["start", "die"], "label": REQUIRED_LABELS},
        )

    def test_invokes_callback_with_normalized_events(self, watcher, client):
        labels = {IP_LABEL: "10.0.0.5:9000", URL_LABEL: "svc.example"}
        client.events.return_value = FakeStream([
            docker_event("start", labels=labels),
            docker_event("exec_start", labels=labels),
            docker_event("die", labels=labels),
            docker_event("start", type_="network"),
        ])
        callback = MagicMock()

        watcher.watch(callback)

        received = [c.args[0] for c in callback.call_args_list]
        assert [e.action for e in received] == [ContainerAction.START, ContainerAction.DIE]
        assert received[0].labels[IP_LABEL] == "10.0.0.5:9000"
        assert received[0].name == "svc"
        assert received[0].id == "abc123"

    def test_events_without_name_are_skipped(self, watcher, client):
        event = docker_event("start")
        del event["Actor"]["Attributes"]["name"]
        client.events.return_value = FakeStream([event])
        callback = MagicMock()

        watcher.watch(callback)
        callback.assert_not_called()

    def test_stop_closes_stream(self, watcher, client):
        stream = FakeStream([docker_event("start"), docker_event("die")])
        client.events.return_value = stream
        callback = MagicMock(side_effect=lambda event: watcher.stop())

        watcher.watch(callback)

        assert stream.closed
        assert callback.call_count == 1

    def test_stream_error_after_stop_is_swallowed(self, watcher, client):
        client.events.return_value = BrokenStream(on_iter=lambda: setattr(watcher, "running", False))
        watcher.watch(MagicMock())

    def test_stream_error_while_running_propagates(self, watcher, client):
        client.events.return_value = BrokenStream()
        with pytest.raises(OSError):
            watcher.watch(MagicMock())

    def test_watch_after_stop_returns_immediately(self, watcher, client):
        stream = FakeStream([docker_event("start")])
        client.events.return_value = stream
        watcher.stop()
        callback = MagicMock()

        watcher.watch(callback)

        assert stream.closed
        callback.assert_not_called()
