"""Server aggregate -- every queue of one organizational unit.

Owns the ``name -> HelpQueue`` mapping, the membership directory the
dispatcher authorizes against, and the server-wide settings (after-session
message, auto-clear policy, log target).  Active helpers are derived from
the queues on demand.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from datetime import datetime
from types import MappingProxyType

from ..collaborators import LogEvent, LogSink, Notifier, QueueRenderer
from ..config.settings import cfg
from ..errors import ServerError
from ..extensions.base import QueueExtension, ServerExtension
from ..queue.backup import ServerBackup
from ..queue.help_queue import HelpQueue
from ..queue.members import Helpee, Helper, Member, utcnow
from ..queue.view import QueueChannel
from ..state.backup_store import BackupStore
from ..util.fanout import bounded, deferred, fan_out

logger = logging.getLogger(__name__)


class AttendingServer:

    def __init__(
        self,
        server_id: str,
        name: str,
        *,
        renderer: QueueRenderer,
        notifier: Notifier,
        log_sink: LogSink,
        queue_extensions: Sequence[QueueExtension] = (),
        server_extensions: Sequence[ServerExtension] = (),
        members: Iterable[Member] = (),
        backup_store: BackupStore | None = None,
        collaborator_timeout: float | None = None,
        tick_interval: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.server_id = server_id
        self.name = name
        self._renderer = renderer
        self._notifier = notifier
        self._log_sink = log_sink
        self._queue_extensions = tuple(queue_extensions)
        self._server_extensions = tuple(server_extensions)
        self._backup_store = backup_store
        self._timeout = (
            cfg.collaborator_timeout if collaborator_timeout is None else collaborator_timeout
        )
        self._tick_interval = tick_interval
        self._clock = clock

        self._members: dict[str, Member] = {m.id: m for m in members}
        self._queues: dict[str, HelpQueue] = {}
        self._queues_lock = asyncio.Lock()

        self._after_session_message = ""
        self._logging_channel: str | None = None
        self._auto_clear_hours = 0.0
        self._auto_clear_enabled = False

        # helper id -> member most recently dequeued by that helper
        self._last_helped: dict[str, Member] = {}
        self._log_tasks: set[asyncio.Task[None]] = set()

    @classmethod
    async def create(
        cls,
        server_id: str,
        name: str,
        queue_channels: Iterable[QueueChannel],
        *,
        backup: ServerBackup | None = None,
        **kwargs,
    ) -> AttendingServer:
        """Build a server and its queues, restoring from *backup* (or the
        backup store) when one is available."""
        server = cls(server_id, name, **kwargs)
        if backup is None and server._backup_store is not None:
            backup = server._backup_store.load(server_id)
        if backup is not None:
            server._after_session_message = backup.after_session_message
            server._logging_channel = backup.logging_channel
            server._auto_clear_hours = backup.auto_clear_hours
            server._auto_clear_enabled = backup.auto_clear_enabled
            logger.info("[server] %s restoring from backup (%d queues)", server_id, len(backup.queues))

        channels = list(queue_channels)
        results = await asyncio.gather(*(
            HelpQueue.create(
                channel,
                server._renderer,
                server._notifier,
                server._queue_extensions,
                backup=backup.queue(channel.queue_name) if backup else None,
                resolve_member=server.get_member,
                collaborator_timeout=server._timeout,
                tick_interval=server._tick_interval,
                clock=server._clock,
            )
            for channel in channels
        ), return_exceptions=True)
        queues = [r for r in results if isinstance(r, HelpQueue)]
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            # Built queues already run their tick; stop them before giving up
            await asyncio.gather(*(q.close() for q in queues))
            logger.error("[server] %s failed to build %d queue(s)", server_id, len(failures))
            raise failures[0]
        for queue in queues:
            queue.set_auto_clear(server._auto_clear_hours, server._auto_clear_enabled)
            server._queues[queue.name] = queue
        logger.info("[server] %s (%s) ready with %d queue(s)", name, server_id, len(queues))
        return server

    # -- membership --------------------------------------------------------

    @property
    def members(self) -> Mapping[str, Member]:
        return MappingProxyType(self._members)

    def get_member(self, member_id: str) -> Member | None:
        return self._members.get(member_id)

    def is_admin(self, member: Member) -> bool:
        return cfg.bot_admin_role in member.roles

    def helpable_queues(self, member: Member) -> list[HelpQueue]:
        """Queues named like one of the member's roles."""
        return [q for name, q in sorted(self._queues.items()) if name in member.roles]

    def may_clear(self, member: Member, queue: HelpQueue) -> bool:
        return self.is_admin(member) or queue.name in member.roles

    # -- queues --------------------------------------------------------------

    @property
    def queues(self) -> Mapping[str, HelpQueue]:
        return MappingProxyType(self._queues)

    async def create_queue(self, name: str, channel_id: str = "") -> HelpQueue:
        name = name.strip()
        if not name:
            raise ServerError("Queue name can't be empty.")
        async with self._queues_lock:
            if name in self._queues:
                raise ServerError(f"Queue `{name}` already exists.")
            queue = await HelpQueue.create(
                QueueChannel(name, channel_id or f"{self.server_id}:{name}"),
                self._renderer,
                self._notifier,
                self._queue_extensions,
                collaborator_timeout=self._timeout,
                tick_interval=self._tick_interval,
                clock=self._clock,
            )
            queue.set_auto_clear(self._auto_clear_hours, self._auto_clear_enabled)
            self._queues[name] = queue
        logger.info("[server] %s created queue %s", self.server_id, name)
        self.save_backup()
        return queue

    async def delete_queue(self, name: str) -> None:
        async with self._queues_lock:
            queue = self._queues.pop(name, None)
            if queue is None:
                raise ServerError(f"Queue `{name}` doesn't exist.")
        await queue.close()
        try:
            await bounded(
                self._renderer.clear_surface(queue.channel), self._timeout,
                what=f"clear {name}",
            )
        except Exception as exc:
            logger.warning("[server] clearing surface of deleted queue %s failed: %s", name, exc)
        logger.info("[server] %s deleted queue %s", self.server_id, name)
        self.save_backup()

    # -- helper sessions -------------------------------------------------------

    @property
    def active_helpers(self) -> dict[str, Helper]:
        """One aggregated record per member currently helping any queue."""
        merged: dict[str, Helper] = {}
        for queue in self._queues.values():
            for helper in queue.helpers:
                current = merged.get(helper.member.id)
                if current is None:
                    merged[helper.member.id] = Helper(
                        member=helper.member,
                        help_start=helper.help_start,
                        helped_members=list(helper.helped_members),
                    )
                else:
                    current.help_start = min(current.help_start, helper.help_start)
                    current.helped_members.extend(helper.helped_members)
        return merged

    def helping_queues(self, member: Member) -> list[HelpQueue]:
        return [q for _, q in sorted(self._queues.items()) if member.id in q.helper_ids]

    async def open_all_openable_queues(self, member: Member, notify: bool) -> list[HelpQueue]:
        openable = self.helpable_queues(member)
        if not openable:
            raise ServerError(
                "It seems like you don't have any roles that match a queue. "
                "Ask an admin to give you the role of the queue you want to help."
            )
        if member.id in self.active_helpers:
            raise ServerError("You are already helping. Use `/stop` first.")

        await asyncio.gather(*(q.open_queue(member, notify) for q in openable))
        helper = self.active_helpers[member.id]
        await fan_out(
            [
                (f"{type(ext).__name__}.on_helper_start_helping",
                 deferred(ext.on_helper_start_helping, self, helper))
                for ext in self._server_extensions
            ],
            timeout=self._timeout,
            context="server.start",
        )
        self.send_log_message(LogEvent(
            kind="helper",
            server_id=self.server_id,
            user_id=member.id,
            summary=f"{member.display_name} started helping",
            detail={"queues": [q.name for q in openable]},
        ))
        return openable

    async def close_all_closable_queues(self, member: Member) -> Helper:
        """Close every queue *member* helps and return the combined session."""
        closable = self.helping_queues(member)
        if not closable:
            raise ServerError("You are not currently helping.")

        records = await asyncio.gather(*(q.close_queue(member) for q in closable))
        helper = Helper(
            member=member,
            help_start=min(r.help_start for r in records),
            help_end=max(r.help_end or self._clock() for r in records),
            helped_members=[m for r in records for m in r.helped_members],
        )

        last = self._last_helped.pop(member.id, None)
        branches = []
        if last is not None:
            branches += self._after_session_branches(last)
        branches += [
            (f"{type(ext).__name__}.on_helper_stop_helping",
             deferred(ext.on_helper_stop_helping, self, helper))
            for ext in self._server_extensions
        ]
        await fan_out(branches, timeout=self._timeout, context="server.stop")
        self.send_log_message(LogEvent(
            kind="helper",
            server_id=self.server_id,
            user_id=member.id,
            summary=f"{member.display_name} stopped helping",
            detail={
                "elapsed_seconds": helper.elapsed.total_seconds(),
                "helped": [m.id for m in helper.helped_members],
            },
        ))
        self.save_backup()
        return helper

    # -- waiting lines ---------------------------------------------------------

    async def enqueue_student(self, member: Member, queue: HelpQueue) -> Helpee:
        student = await queue.enqueue(member)
        self.save_backup()
        return student

    async def remove_student_from_queue(self, member: Member, queue: HelpQueue) -> Helpee:
        student = await queue.remove_student(member)
        self.save_backup()
        return student

    async def dequeue_global_first(self, helper_member: Member) -> Helpee:
        """Dequeue whoever has waited longest across the helper's queues."""
        helping = self.helping_queues(helper_member)
        if not helping:
            raise ServerError("You are not currently helping.")
        candidates = [q for q in helping if q.first is not None]
        if not candidates:
            raise ServerError("There's no one left in any of your queues.")
        queue = min(candidates, key=lambda q: q.first.wait_start)
        return await self._dequeue(helper_member, queue, None)

    async def dequeue_with_args(
        self,
        helper_member: Member,
        target_student: Member | None = None,
        target_queue: HelpQueue | None = None,
    ) -> Helpee:
        if target_queue is None:
            if target_student is None:
                return await self.dequeue_global_first(helper_member)
            target_queue = next(
                (
                    q for q in self.helping_queues(helper_member)
                    if any(s.member.id == target_student.id for s in q.students)
                ),
                None,
            )
            if target_queue is None:
                raise ServerError(
                    f"{target_student.display_name} is not in any of the queues you are helping."
                )
        return await self._dequeue(helper_member, target_queue, target_student)

    async def _dequeue(
        self,
        helper_member: Member,
        queue: HelpQueue,
        target: Member | None,
    ) -> Helpee:
        student = await queue.dequeue_with_helper(helper_member, target)
        previous = self._last_helped.get(helper_member.id)
        self._last_helped[helper_member.id] = student.member

        branches = [(f"invite {student.member.id}", deferred(
            self._notifier.notify,
            student.member,
            f"It's your turn! {helper_member.display_name} is ready to help you in `{queue.name}`.",
        ))]
        if previous is not None:
            branches += self._after_session_branches(previous)
        await fan_out(branches, timeout=self._timeout, context="server.dequeue")
        self.save_backup()
        return student

    def _after_session_branches(self, member: Member) -> list[tuple[str, Awaitable[None]]]:
        if not self._after_session_message:
            return []
        return [(
            f"after-session {member.id}",
            deferred(self._notifier.notify, member, self._after_session_message),
        )]

    async def clear_queue(self, queue: HelpQueue) -> None:
        await queue.remove_all_students()
        self.save_backup()

    async def clear_all_queues(self) -> None:
        if not self._queues:
            raise ServerError(
                "This server doesn't seem to have any queues. "
                "You can use `/queue add <name>` to create one."
            )
        await asyncio.gather(*(q.remove_all_students() for q in self._queues.values()))
        self.save_backup()

    async def clean_up_queue(self, queue: HelpQueue) -> None:
        await queue.clean_up_channel()

    async def clean_up_all_queues(self) -> None:
        await asyncio.gather(*(q.clean_up_channel() for q in self._queues.values()))

    async def announce(
        self,
        helper_member: Member,
        message: str,
        queue: HelpQueue | None = None,
    ) -> int:
        """Send *message* to everyone waiting in *queue* or in every queue
        the helper currently helps.  Returns the number of recipients."""
        if queue is not None:
            if not self.may_clear(helper_member, queue):
                raise ServerError(f"You don't have permission to announce in `{queue.name}`.")
            targets = [queue]
        else:
            targets = self.helping_queues(helper_member)
            if not targets:
                raise ServerError("You are not currently helping.")

        recipients: dict[str, Member] = {}
        for q in targets:
            for student in q.students:
                recipients.setdefault(student.member.id, student.member)
        text = f"Announcement from {helper_member.display_name}: {message}"
        await fan_out(
            [
                (f"announce {m.id}", deferred(self._notifier.notify, m, text))
                for m in recipients.values()
            ],
            timeout=self._timeout,
            context="server.announce",
        )
        return len(recipients)

    # -- server settings -------------------------------------------------------

    @property
    def after_session_message(self) -> str:
        return self._after_session_message

    def set_after_session_message(self, message: str) -> None:
        self._after_session_message = message
        self.save_backup()

    @property
    def auto_clear(self) -> tuple[float, bool]:
        return self._auto_clear_hours, self._auto_clear_enabled

    def set_queue_auto_clear(self, hours: float, enable: bool) -> None:
        self._auto_clear_hours = hours if enable else 0.0
        self._auto_clear_enabled = enable
        for queue in self._queues.values():
            queue.set_auto_clear(hours, enable)
        self.save_backup()

    @property
    def logging_channel(self) -> str | None:
        return self._logging_channel

    def set_logging_channel(self, target: str | None) -> None:
        self._logging_channel = target
        self.save_backup()

    def send_log_message(self, event: LogEvent) -> None:
        """Hand *event* to the log sink without waiting for delivery."""
        if self._logging_channel is None:
            return
        task = asyncio.create_task(self._deliver_log(self._logging_channel, event))
        self._log_tasks.add(task)
        task.add_done_callback(self._log_tasks.discard)

    async def _deliver_log(self, target: str, event: LogEvent) -> None:
        try:
            await bounded(self._log_sink.record(target, event), self._timeout, what="log sink")
        except Exception as exc:
            logger.warning("[server] log delivery to %s failed: %s", target, exc)

    # -- persistence & shutdown --------------------------------------------

    def backup(self) -> ServerBackup:
        return ServerBackup(
            server_id=self.server_id,
            queues=tuple(q.to_backup() for _, q in sorted(self._queues.items())),
            after_session_message=self._after_session_message,
            logging_channel=self._logging_channel,
            auto_clear_hours=self._auto_clear_hours,
            auto_clear_enabled=self._auto_clear_enabled,
        )

    def save_backup(self) -> None:
        if self._backup_store is None:
            return
        try:
            self._backup_store.save(self.backup())
        except OSError as exc:
            logger.error("[server] backup of %s failed: %s", self.server_id, exc, exc_info=True)

    async def close(self) -> None:
        await asyncio.gather(*(q.close() for q in self._queues.values()))
        if self._log_tasks:
            await asyncio.gather(*self._log_tasks, return_exceptions=True)
        self.save_backup()
        logger.info("[server] %s closed", self.server_id)

    def __repr__(self) -> str:
        return f"AttendingServer(id={self.server_id!r}, queues={sorted(self._queues)})"
