"""Shared pytest fixtures for helpqueue.runtime tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from helpqueue.runtime.collaborators import LogEvent
from helpqueue.runtime.errors import DeliveryFailure
from helpqueue.runtime.queue.members import Member
from helpqueue.runtime.queue.view import QueueChannel, QueueViewModel


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setenv("HELPQUEUE_DATA_DIR", str(data_dir))
    monkeypatch.setenv("DOTENV_PATH", str(tmp_path / ".env"))
    return data_dir


@pytest.fixture(autouse=True)
def _reset_singletons(_isolate_data_dir: Path):
    from helpqueue.runtime.util.singletons import reset_all_singletons

    reset_all_singletons()
    yield
    reset_all_singletons()


@pytest.fixture()
def data_dir(_isolate_data_dir: Path) -> Path:
    return _isolate_data_dir


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class FakeRenderer:
    def __init__(self) -> None:
        self.renders: list[tuple[QueueChannel, QueueViewModel, bool]] = []
        self.clears: list[QueueChannel] = []
        self.fail_next = 0

    async def render_queue(
        self,
        channel: QueueChannel,
        view: QueueViewModel,
        force_full_redraw: bool = False,
    ) -> None:
        from helpqueue.runtime.errors import RenderFailure

        if self.fail_next and not force_full_redraw:
            self.fail_next -= 1
            raise RenderFailure("stale surface", channel.queue_name)
        self.renders.append((channel, view, force_full_redraw))

    async def clear_surface(self, channel: QueueChannel) -> None:
        self.clears.append(channel)

    @property
    def last_view(self) -> QueueViewModel:
        return self.renders[-1][1]

    @property
    def full_redraws(self) -> int:
        return sum(1 for _, _, full in self.renders if full)


class FakeNotifier:
    def __init__(self, failing: set[str] | None = None) -> None:
        self.sent: list[tuple[str, str]] = []
        self.failing = failing or set()

    async def notify(self, member: Member, message: str) -> None:
        if member.id in self.failing:
            raise DeliveryFailure(f"cannot reach {member.id}")
        self.sent.append((member.id, message))

    def to(self, member_id: str) -> list[str]:
        return [msg for mid, msg in self.sent if mid == member_id]


class FakeLogSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, LogEvent]] = []

    async def record(self, target: str, event: LogEvent) -> None:
        self.events.append((target, event))


class StepClock:
    """Advances by one minute on every call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now


@pytest.fixture()
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def log_sink() -> FakeLogSink:
    return FakeLogSink()


@pytest.fixture()
def clock() -> StepClock:
    return StepClock()


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


@pytest.fixture()
def admin() -> Member:
    return Member("u-admin", "Alan", frozenset({"Bot Admin"}))


@pytest.fixture()
def staff() -> Member:
    return Member("u-staff", "Ada", frozenset({"Staff", "office-hours", "labs"}))


@pytest.fixture()
def staff2() -> Member:
    return Member("u-staff2", "Barbara", frozenset({"Staff", "labs"}))


@pytest.fixture()
def alice() -> Member:
    return Member("u-alice", "Alice")


@pytest.fixture()
def bob() -> Member:
    return Member("u-bob", "Bob")


@pytest.fixture()
def carol() -> Member:
    return Member("u-carol", "Carol")


# ---------------------------------------------------------------------------
# Queue / server factories
# ---------------------------------------------------------------------------


@pytest.fixture()
async def make_queue(renderer, notifier, clock) -> AsyncIterator[Callable]:
    from helpqueue.runtime.queue.help_queue import HelpQueue

    created: list[HelpQueue] = []

    async def _make(name: str = "office-hours", extensions=(), **kwargs) -> HelpQueue:
        kwargs.setdefault("collaborator_timeout", 1.0)
        kwargs.setdefault("tick_interval", 3600)
        queue = await HelpQueue.create(
            QueueChannel(name, f"chan-{name}"),
            kwargs.pop("renderer", renderer),
            kwargs.pop("notifier", notifier),
            extensions,
            clock=clock,
            **kwargs,
        )
        created.append(queue)
        return queue

    yield _make
    for queue in created:
        await queue.close()


@pytest.fixture()
async def make_server(renderer, notifier, log_sink, clock, admin, staff, staff2, alice, bob, carol):
    from helpqueue.runtime.server.attending_server import AttendingServer

    created: list[AttendingServer] = []

    async def _make(
        queues: tuple[str, ...] = ("office-hours", "labs"),
        **kwargs,
    ) -> AttendingServer:
        kwargs.setdefault("collaborator_timeout", 1.0)
        kwargs.setdefault("tick_interval", 3600)
        kwargs.setdefault("members", [admin, staff, staff2, alice, bob, carol])
        server = await AttendingServer.create(
            kwargs.pop("server_id", "srv-1"),
            kwargs.pop("name", "CS 101"),
            [QueueChannel(q, f"chan-{q}") for q in queues],
            renderer=renderer,
            notifier=notifier,
            log_sink=log_sink,
            clock=clock,
            **kwargs,
        )
        created.append(server)
        return server

    yield _make
    for server in created:
        await server.close()
