"""Per-topic help queue -- the waiting line, its helpers, and subscribers.

Every mutating operation runs under the queue's ``asyncio.Lock`` so two
operations on one queue never interleave; different queues are independent.
Side effects of an operation (direct notifications, extension hooks) are
fanned out concurrently, each bounded by the collaborator timeout, and
joined before the operation returns.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Iterable, Sequence
from datetime import datetime

from ..collaborators import Notifier, QueueRenderer
from ..config.settings import cfg
from ..errors import (
    AlreadyHelpingError,
    AlreadyQueuedError,
    AlreadySubscribedError,
    EmptyQueueError,
    IsHelperError,
    NotAHelperError,
    NotInQueueError,
    NotSubscribedError,
    QueueClosedError,
    RenderFailure,
)
from ..extensions.base import QueueExtension
from ..util.fanout import BranchOutcome, bounded, deferred, fan_out
from .backup import QueueBackup, backup_students, restore_students
from .members import Helpee, Helper, Member, utcnow
from .view import QueueChannel, QueueViewModel

logger = logging.getLogger(__name__)

_Branch = tuple[str, Awaitable[None]]


class HelpQueue:

    def __init__(
        self,
        channel: QueueChannel,
        renderer: QueueRenderer,
        notifier: Notifier,
        extensions: Sequence[QueueExtension] = (),
        *,
        backup: QueueBackup | None = None,
        resolve_member: Callable[[str], Member | None] | None = None,
        collaborator_timeout: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._channel = channel
        self._renderer = renderer
        self._notifier = notifier
        self._extensions = tuple(extensions)
        self._timeout = (
            cfg.collaborator_timeout if collaborator_timeout is None else collaborator_timeout
        )
        self._clock = clock
        self._lock = asyncio.Lock()

        # Keyed by Member.id
        self._helpers: dict[str, Helper] = {}
        self._notif_group: dict[str, Member] = {}
        self._students: list[Helpee] = []
        self._is_open = False

        self._auto_clear_enabled = False
        self._auto_clear_hours = 0.0
        self._auto_clear_task: asyncio.Task[None] | None = None
        self._tick_task: asyncio.Task[None] | None = None

        if backup is not None and resolve_member is not None:
            self._students = restore_students(backup, resolve_member)

    @classmethod
    async def create(
        cls,
        channel: QueueChannel,
        renderer: QueueRenderer,
        notifier: Notifier,
        extensions: Sequence[QueueExtension] = (),
        *,
        backup: QueueBackup | None = None,
        resolve_member: Callable[[str], Member | None] | None = None,
        collaborator_timeout: float | None = None,
        tick_interval: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> HelpQueue:
        """Build a queue, run the periodic hooks once, draw it fresh, and
        start its background tick."""
        queue = cls(
            channel,
            renderer,
            notifier,
            extensions,
            backup=backup,
            resolve_member=resolve_member,
            collaborator_timeout=collaborator_timeout,
            clock=clock,
        )
        async with queue._lock:
            # Extensions may contribute to the first render
            await queue._fan_out(
                queue._hook_branches(
                    "on_queue_periodic_update",
                    lambda ext: ext.on_queue_periodic_update(queue),
                ),
                "queue.create",
            )
            await queue._clean_up()
        queue.start_periodic_tick(tick_interval)
        return queue

    # -- read-only views ---------------------------------------------------

    @property
    def name(self) -> str:
        return self._channel.queue_name

    @property
    def channel(self) -> QueueChannel:
        return self._channel

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def length(self) -> int:
        return len(self._students)

    @property
    def first(self) -> Helpee | None:
        return self._students[0] if self._students else None

    @property
    def students(self) -> tuple[Helpee, ...]:
        return tuple(self._students)

    @property
    def helpers(self) -> tuple[Helper, ...]:
        return tuple(self._helpers.values())

    @property
    def helper_ids(self) -> frozenset[str]:
        return frozenset(self._helpers)

    @property
    def notif_group(self) -> tuple[Member, ...]:
        return tuple(self._notif_group.values())

    @property
    def extensions(self) -> tuple[QueueExtension, ...]:
        return self._extensions

    @property
    def auto_clear(self) -> tuple[float, bool]:
        return self._auto_clear_hours, self._auto_clear_enabled

    @property
    def tick_running(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    def view_model(self) -> QueueViewModel:
        return QueueViewModel(
            name=self.name,
            helper_ids=tuple(h.member.mention for h in self._helpers.values()),
            student_display_names=tuple(s.member.display_name for s in self._students),
            is_open=self._is_open,
        )

    def to_backup(self) -> QueueBackup:
        return backup_students(self.name, self._students)

    # -- helper sessions ---------------------------------------------------

    async def open_queue(self, helper_member: Member, notify: bool) -> None:
        """Add *helper_member* as a helper and open the queue.

        Raises ``AlreadyHelpingError`` if the member already helps here.
        """
        async with self._lock:
            if helper_member.id in self._helpers:
                raise AlreadyHelpingError(self.name)
            self._helpers[helper_member.id] = Helper(
                member=helper_member,
                help_start=self._clock(),
            )
            self._is_open = True
            self._cancel_auto_clear()

            branches = self._hook_branches("on_queue_open", lambda ext: ext.on_queue_open(self))
            if notify:
                branches += self._notify_branches(
                    self._notif_group.values(),
                    f"Queue `{self.name}` is open!",
                )
            await self._fan_out(branches, "queue.open")
            await self._render()

    async def close_queue(self, helper_member: Member) -> Helper:
        """Remove *helper_member* from the helpers and return its closed record."""
        async with self._lock:
            if not self._is_open:
                raise QueueClosedError(self.name, "This queue is already closed.")
            helper = self._helpers.get(helper_member.id)
            if helper is None:
                raise NotAHelperError(self.name)

            helper.help_end = self._clock()
            del self._helpers[helper_member.id]
            self._is_open = bool(self._helpers)

            await self._fan_out(
                self._hook_branches("on_queue_close", lambda ext: ext.on_queue_close(self)),
                "queue.close",
            )
            if not self._is_open:
                self._schedule_auto_clear()
            await self._render()
            return helper

    # -- waiting line ------------------------------------------------------

    async def enqueue(self, student_member: Member) -> Helpee:
        async with self._lock:
            if not self._is_open:
                raise QueueClosedError(self.name)
            if any(s.member.id == student_member.id for s in self._students):
                raise AlreadyQueuedError(self.name)
            if student_member.id in self._helpers:
                raise IsHelperError(self.name)

            student = Helpee(
                member=student_member,
                wait_start=self._clock(),
                up_next=not self._students,
            )
            self._students.append(student)

            branches = self._notify_branches(
                (h.member for h in self._helpers.values()),
                f'Heads up! {student_member.display_name} has joined "{self.name}".',
            )
            branches += self._hook_branches(
                "on_enqueue", lambda ext: ext.on_enqueue(self, student)
            )
            await self._fan_out(branches, "queue.enqueue")
            await self._render()
            return student

    async def dequeue_with_helper(
        self,
        helper_member: Member,
        target: Member | None = None,
    ) -> Helpee:
        """Remove the head of the line (or *target*) on behalf of a helper."""
        async with self._lock:
            if not self._is_open:
                raise QueueClosedError(
                    self.name, "This queue is not open. Did you mean to use `/start`?"
                )
            if target is not None:
                idx = self._index_of(target)
                if idx is None:
                    raise NotInQueueError(self.name, target.display_name)
            elif not self._students:
                raise EmptyQueueError(self.name)
            else:
                idx = 0
            helper = self._helpers.get(helper_member.id)
            if helper is None:
                raise NotAHelperError(self.name)

            student = self._students.pop(idx)
            helper.helped_members.append(student.member)
            await self._fan_out(
                self._hook_branches("on_dequeue", lambda ext: ext.on_dequeue(self, student)),
                "queue.dequeue",
            )
            await self._render()
            return student

    async def remove_student(self, target: Member) -> Helpee:
        async with self._lock:
            idx = self._index_of(target)
            if idx is None:
                raise NotInQueueError(self.name, target.display_name)
            student = self._students.pop(idx)
            await self._fan_out(
                self._hook_branches(
                    "on_student_remove", lambda ext: ext.on_student_remove(self, student)
                ),
                "queue.remove",
            )
            await self._render()
            return student

    async def remove_all_students(self) -> None:
        async with self._lock:
            await self._clear_locked()

    # -- notification group ------------------------------------------------

    async def add_to_notif_group(self, member: Member) -> None:
        async with self._lock:
            if member.id in self._notif_group:
                raise AlreadySubscribedError(self.name)
            self._notif_group[member.id] = member

    async def remove_from_notif_group(self, member: Member) -> None:
        async with self._lock:
            if member.id not in self._notif_group:
                raise NotSubscribedError(self.name)
            del self._notif_group[member.id]

    # -- rendering -----------------------------------------------------------

    async def clean_up_channel(self) -> None:
        """Discard everything on the queue's surface and redraw from scratch."""
        async with self._lock:
            await self._clean_up()

    async def _render(self) -> None:
        try:
            await bounded(
                self._renderer.render_queue(self._channel, self.view_model()),
                self._timeout,
                what=f"render {self.name}",
            )
        except Exception as exc:
            logger.warning("[queue.render] force rerender in %s: %s", self.name, exc)
            await self._clean_up()
            return

        outcomes = await self._fan_out(
            self._hook_branches(
                "on_queue_render_complete",
                lambda ext: ext.on_queue_render_complete(self, False),
            ),
            "queue.render_complete",
        )
        if any(isinstance(o.error, RenderFailure) for o in outcomes):
            logger.warning("[queue.render] extension requested rerender in %s", self.name)
            await self._clean_up()

    async def _clean_up(self) -> None:
        try:
            await bounded(
                self._renderer.clear_surface(self._channel),
                self._timeout,
                what=f"clear {self.name}",
            )
            await bounded(
                self._renderer.render_queue(self._channel, self.view_model(), True),
                self._timeout,
                what=f"full render {self.name}",
            )
        except Exception as exc:
            logger.error(
                "[queue.clean_up] full redraw of %s failed: %s", self.name, exc, exc_info=True,
            )
            return
        await self._fan_out(
            self._hook_branches(
                "on_queue_render_complete",
                lambda ext: ext.on_queue_render_complete(self, True),
            ),
            "queue.clean_up",
        )

    # -- background work -----------------------------------------------------

    def set_auto_clear(self, hours: float, enable: bool) -> None:
        """Clear the line *hours* after the last helper leaves, if enabled."""
        self._auto_clear_enabled = enable
        self._auto_clear_hours = hours if enable else 0.0
        if not enable:
            self._cancel_auto_clear()
        elif not self._is_open and self._students:
            self._schedule_auto_clear()

    def start_periodic_tick(self, interval: float | None = None) -> None:
        if self.tick_running:
            return
        if interval is None:
            # Jitter keeps queues from hitting external services in lockstep
            interval = cfg.queue_tick_hours * 3600 + random.uniform(
                0, cfg.queue_tick_jitter_seconds
            )
        self._tick_task = asyncio.create_task(
            self._tick_loop(interval), name=f"queue-tick:{self.name}"
        )

    async def close(self) -> None:
        """Cancel background tasks.  The queue must not be used afterwards."""
        tasks = [t for t in (self._tick_task, self._auto_clear_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tick_task = None
        self._auto_clear_task = None
        logger.info("[queue.close] disposed %s", self.name)

    async def _tick_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            async with self._lock:
                await self._fan_out(
                    self._hook_branches(
                        "on_queue_periodic_update",
                        lambda ext: ext.on_queue_periodic_update(self),
                    ),
                    "queue.tick",
                )

    def _schedule_auto_clear(self) -> None:
        if not self._auto_clear_enabled or self._auto_clear_hours <= 0:
            return
        self._cancel_auto_clear()
        self._auto_clear_task = asyncio.create_task(
            self._auto_clear_after(self._auto_clear_hours * 3600),
            name=f"queue-auto-clear:{self.name}",
        )

    def _cancel_auto_clear(self) -> None:
        if self._auto_clear_task is not None:
            self._auto_clear_task.cancel()
            self._auto_clear_task = None

    async def _auto_clear_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        async with self._lock:
            if self._is_open:
                return
            logger.info("[queue.auto_clear] clearing %s after %.2fh closed", self.name, delay / 3600)
            await self._clear_locked()

    # -- internals -----------------------------------------------------------

    async def _clear_locked(self) -> None:
        snapshot = tuple(self._students)
        await self._fan_out(
            self._hook_branches(
                "on_remove_all_students",
                lambda ext: ext.on_remove_all_students(self, snapshot),
            ),
            "queue.clear",
        )
        self._students = []
        await self._render()

    def _index_of(self, member: Member) -> int | None:
        return next(
            (i for i, s in enumerate(self._students) if s.member.id == member.id),
            None,
        )

    def _hook_branches(
        self,
        hook: str,
        call: Callable[[QueueExtension], Awaitable[None]],
    ) -> list[_Branch]:
        return [(f"{type(ext).__name__}.{hook}", deferred(call, ext)) for ext in self._extensions]

    def _notify_branches(self, members: Iterable[Member], message: str) -> list[_Branch]:
        return [
            (f"notify {m.id}", deferred(self._notifier.notify, m, message)) for m in members
        ]

    async def _fan_out(self, branches: list[_Branch], context: str) -> list[BranchOutcome]:
        return await fan_out(branches, timeout=self._timeout, context=context)

    def __repr__(self) -> str:
        return (
            f"HelpQueue(name={self.name!r}, open={self._is_open}, "
            f"helpers={len(self._helpers)}, students={len(self._students)})"
        )
