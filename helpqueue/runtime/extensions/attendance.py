"""Attendance tracking.

Records each finished helping session (helper, start, end, who was helped)
into the attendance log and lets helpers look up their own totals with the
``attendance`` command.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from ..interactions.routes import (
    CommandRoute,
    HandlerMap,
    InteractionContext,
    InteractionKind,
    helper_roles,
)
from ..state.attendance_store import AttendanceEntry, AttendanceStore, get_attendance_store
from ..util.durations import format_duration
from .base import InteractionExtension, ServerExtension

if TYPE_CHECKING:
    from ..queue.members import Helper
    from ..server.attending_server import AttendingServer

logger = logging.getLogger(__name__)

ATTENDANCE_COMMAND = "attendance"


class AttendanceExtension(ServerExtension, InteractionExtension):

    name = "attendance"

    def __init__(self, store: AttendanceStore | None = None) -> None:
        self._store = store

    @property
    def store(self) -> AttendanceStore:
        if self._store is None:
            self._store = get_attendance_store()
        return self._store

    async def on_helper_stop_helping(self, server: AttendingServer, helper: Helper) -> None:
        if helper.help_end is None:
            logger.warning(
                "[attendance] session of %s has no end time, not recorded", helper.member.id,
            )
            return
        entry = AttendanceEntry(
            server_id=server.server_id,
            helper_id=helper.member.id,
            helper_name=helper.member.display_name,
            help_start=helper.help_start.isoformat(),
            help_end=helper.help_end.isoformat(),
            elapsed_seconds=(helper.help_end - helper.help_start).total_seconds(),
            helped_member_ids=[m.id for m in helper.helped_members],
            helped_member_names=[m.display_name for m in helper.helped_members],
        )
        self.store.append(entry)
        logger.info(
            "[attendance] recorded %s in %s: %.0fs, %d helped",
            helper.member.display_name, server.server_id,
            entry.elapsed_seconds, len(entry.helped_member_ids),
        )

    def handler_maps(self) -> Mapping[InteractionKind, HandlerMap]:
        return {
            InteractionKind.COMMAND: HandlerMap.build(
                InteractionKind.COMMAND,
                [CommandRoute(ATTENDANCE_COMMAND, self._cmd_attendance, helper_roles())],
            ),
        }

    async def _cmd_attendance(self, ctx: InteractionContext) -> str:
        summary = self.store.summary(ctx.server.server_id, ctx.member.id)
        if not summary["sessions"]:
            return "You have no recorded helping sessions yet."
        return (
            f"You have helped for {format_duration(summary['total_seconds'])} "
            f"across {summary['sessions']} session(s) and helped "
            f"{summary['helped']} student(s)."
        )
