"""Routing types shared by the dispatcher, the composer and every handler.

An inbound interaction is one of four kinds.  Each kind has its own handler
map: ``id -> CommandRoute`` plus the set of ids that reply on their own and
therefore get no "Processing ..." placeholder.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol

from ..config.settings import cfg
from ..errors import AuthorizationError, CommandParseError
from ..queue.members import Member

if TYPE_CHECKING:
    from ..queue.help_queue import HelpQueue
    from ..server.attending_server import AttendingServer


class InteractionKind(str, Enum):
    COMMAND = "command"
    BUTTON = "button"
    SELECT_MENU = "select_menu"
    MODAL_SUBMIT = "modal_submit"


class CommandName(str, Enum):
    """Identifiers of the built-in commands."""

    QUEUE = "queue"
    START = "start"
    STOP = "stop"
    ENQUEUE = "enqueue"
    LEAVE = "leave"
    NEXT = "next"
    CLEAR = "clear"
    CLEAR_ALL = "clear_all"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    ANNOUNCE = "announce"
    LIST_HELPERS = "list_helpers"
    CLEANUP_QUEUE = "cleanup_queue"
    CLEANUP_ALL = "cleanup_all"
    SET_AFTER_SESSION_MSG = "set_after_session_msg"
    SET_QUEUE_AUTO_CLEAR = "set_queue_auto_clear"
    SET_LOGGING_CHANNEL = "set_logging_channel"
    STOP_LOGGING = "stop_logging"


MEMBER: frozenset[str] = frozenset()


def admin_roles() -> frozenset[str]:
    return frozenset({cfg.bot_admin_role})


def helper_roles() -> frozenset[str]:
    return frozenset({cfg.bot_admin_role, cfg.staff_role})


# -- requests and replies ----------------------------------------------------


@dataclass(frozen=True)
class InteractionRequest:
    kind: InteractionKind
    name: str
    server_id: str
    user_id: str
    subcommand: str = ""
    options: Mapping[str, Any] = field(default_factory=dict)
    channel_id: str = ""

    @property
    def label(self) -> str:
        return f"{self.name} {self.subcommand}".strip()


class Responder(Protocol):
    @property
    def replied(self) -> bool: ...

    async def reply(self, text: str, *, ephemeral: bool = True) -> None: ...

    async def edit_reply(self, text: str) -> None: ...


@dataclass(frozen=True)
class Reply:
    action: str  # reply | edit
    text: str
    ephemeral: bool = True


class BufferedResponder:
    """Collects replies so a request/response transport can return them."""

    def __init__(self) -> None:
        self.replies: list[Reply] = []

    @property
    def replied(self) -> bool:
        return bool(self.replies)

    @property
    def final_text(self) -> str:
        return self.replies[-1].text if self.replies else ""

    async def reply(self, text: str, *, ephemeral: bool = True) -> None:
        if self.replies:
            raise RuntimeError("interaction already replied; use edit_reply")
        self.replies.append(Reply("reply", text, ephemeral))

    async def edit_reply(self, text: str) -> None:
        if not self.replies:
            raise RuntimeError("nothing to edit; reply first")
        self.replies.append(Reply("edit", text, self.replies[0].ephemeral))


# -- handler context -----------------------------------------------------------


@dataclass
class InteractionContext:
    request: InteractionRequest
    server: AttendingServer
    member: Member
    responder: Responder

    def option(self, name: str, default: Any = None) -> Any:
        value = self.request.options.get(name)
        return default if value is None or value == "" else value

    def require_option(self, name: str) -> str:
        value = self.option(name)
        if value is None:
            raise CommandParseError(f"Missing required option `{name}`.")
        return str(value)

    def bool_option(self, name: str, default: bool = False) -> bool:
        value = self.option(name)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")

    def float_option(self, name: str) -> float:
        raw = self.require_option(name)
        try:
            return float(raw)
        except ValueError:
            raise CommandParseError(f"Option `{name}` must be a number, got `{raw}`.") from None

    def queue_option(self, name: str = "queue_name") -> HelpQueue:
        """Resolve a queue argument; buttons and commands both pass it by name."""
        queue_name = self.require_option(name)
        queue = self.server.queues.get(queue_name)
        if queue is None:
            raise CommandParseError(f"The command argument `{queue_name}` was not a valid queue.")
        return queue

    def member_option(self, name: str) -> Member | None:
        member_id = self.option(name)
        if member_id is None:
            return None
        member = self.server.get_member(str(member_id))
        if member is None:
            raise CommandParseError(f"<@{member_id}> is not a member of this server.")
        return member

    @property
    def channel_queue(self) -> HelpQueue | None:
        """The queue whose channel this request was issued from, if any."""
        channel_id = self.request.channel_id
        if not channel_id:
            return None
        return next(
            (q for q in self.server.queues.values() if q.channel.channel_id == channel_id),
            None,
        )

    def require_roles(self, roles: Iterable[str], action: str) -> None:
        roles = frozenset(roles)
        if roles and not self.member.has_any_role(roles):
            raise AuthorizationError(
                f"You need one of the roles {', '.join(sorted(roles))} to {action}."
            )


Handler = Callable[[InteractionContext], Awaitable[str | None]]


# -- handler maps --------------------------------------------------------------


@dataclass(frozen=True)
class CommandRoute:
    command_id: str
    handler: Handler
    required_roles: frozenset[str] = MEMBER


@dataclass(frozen=True)
class HandlerMap:
    kind: InteractionKind
    routes: Mapping[str, CommandRoute] = field(default_factory=lambda: MappingProxyType({}))
    skip_progress_message: frozenset[str] = frozenset()

    @classmethod
    def build(
        cls,
        kind: InteractionKind,
        routes: Iterable[CommandRoute],
        skip_progress_message: Iterable[str] = (),
    ) -> HandlerMap:
        table: dict[str, CommandRoute] = {}
        for route in routes:
            if route.command_id in table:
                raise ValueError(f"duplicate {kind.value} route '{route.command_id}'")
            table[route.command_id] = route
        return cls(kind, MappingProxyType(table), frozenset(skip_progress_message))

    def get(self, command_id: str) -> CommandRoute | None:
        return self.routes.get(command_id)


@dataclass(frozen=True)
class CompleteHandlerMaps:
    """One read-only handler map per interaction kind."""

    maps: Mapping[InteractionKind, HandlerMap]

    def for_kind(self, kind: InteractionKind) -> HandlerMap:
        return self.maps.get(kind) or HandlerMap(kind)

    def ids(self, kind: InteractionKind) -> list[str]:
        return sorted(self.for_kind(kind).routes)
