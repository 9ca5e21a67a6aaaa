"""Tests for the central interaction dispatcher."""

from __future__ import annotations

import asyncio

import pytest

from helpqueue.runtime.extensions.base import InteractionExtension
from helpqueue.runtime.interactions._dispatcher import InteractionDispatcher
from helpqueue.runtime.interactions.builtin import base_handler_maps
from helpqueue.runtime.interactions.composer import combine_handler_maps
from helpqueue.runtime.interactions.routes import (
    BufferedResponder,
    CommandRoute,
    HandlerMap,
    InteractionKind,
    InteractionRequest,
)


def _cmd(name: str, user_id: str, server_id: str = "srv-1", **options) -> InteractionRequest:
    subcommand = options.pop("subcommand", "")
    channel_id = options.pop("channel_id", "")
    return InteractionRequest(
        kind=InteractionKind.COMMAND,
        name=name,
        server_id=server_id,
        user_id=user_id,
        subcommand=subcommand,
        options=options,
        channel_id=channel_id,
    )


def _button(name: str, user_id: str, queue_name: str) -> InteractionRequest:
    return InteractionRequest(
        kind=InteractionKind.BUTTON,
        name=name,
        server_id="srv-1",
        user_id=user_id,
        options={"queue_name": queue_name},
    )


class CrashingExtension(InteractionExtension):
    name = "crash"

    def handler_maps(self):
        async def boom(ctx):
            raise RuntimeError("kaboom")

        return {
            InteractionKind.COMMAND: HandlerMap.build(
                InteractionKind.COMMAND, [CommandRoute("boom", boom)],
            ),
        }


@pytest.fixture()
async def server(make_server):
    return await make_server()


@pytest.fixture()
def dispatcher(server) -> InteractionDispatcher:
    maps = combine_handler_maps(base_handler_maps(), [CrashingExtension()])
    return InteractionDispatcher({server.server_id: server}, maps)


async def _run(dispatcher: InteractionDispatcher, request: InteractionRequest) -> BufferedResponder:
    responder = BufferedResponder()
    await dispatcher.process(request, responder)
    return responder


class TestOrigin:
    async def test_unknown_server(self, dispatcher, alice) -> None:
        responder = await _run(dispatcher, _cmd("enqueue", alice.id, server_id="nope"))
        assert len(responder.replies) == 1
        assert responder.replies[0].action == "reply"
        assert responder.final_text.startswith("Unknown Origin:")

    async def test_unknown_member(self, dispatcher) -> None:
        responder = await _run(dispatcher, _cmd("enqueue", "stranger", queue_name="labs"))
        assert responder.final_text.startswith("Authorization Error in `labs`:")


class TestReplies:
    async def test_placeholder_then_success(self, dispatcher, staff) -> None:
        responder = await _run(dispatcher, _cmd("start", staff.id))
        assert [r.action for r in responder.replies] == ["reply", "edit"]
        assert responder.replies[0].text == "Processing command `start` ..."
        assert responder.final_text == "You have started helping! Have fun!"

    async def test_not_implemented(self, dispatcher, alice) -> None:
        responder = await _run(dispatcher, _cmd("teleport", alice.id))
        assert responder.final_text.startswith("Command Not Implemented:")

    async def test_handler_replied_itself(self, dispatcher, alice) -> None:
        responder = await _run(dispatcher, _cmd("list_helpers", alice.id))
        assert [r.action for r in responder.replies] == ["reply"]
        assert responder.final_text == "No one is currently helping."

    async def test_unexpected_error_becomes_generic_reply(self, dispatcher, alice) -> None:
        responder = await _run(dispatcher, _cmd("boom", alice.id))
        assert responder.final_text.startswith("Error: Something went wrong")

    async def test_unexpected_error_names_queue_in_scope(self, dispatcher, alice) -> None:
        responder = await _run(dispatcher, _cmd("boom", alice.id, queue_name="labs"))
        assert responder.final_text.startswith("Error in `labs`: Something went wrong")

    async def test_error_names_queue_of_channel(self, dispatcher, alice) -> None:
        responder = await _run(dispatcher, _cmd("boom", alice.id, channel_id="chan-office-hours"))
        assert responder.final_text.startswith("Error in `office-hours`:")

    async def test_queue_error_names_queue(self, dispatcher, alice) -> None:
        responder = await _run(dispatcher, _cmd("enqueue", alice.id, queue_name="labs"))
        assert responder.final_text == "Queue Error in `labs`: This queue is not open."

    async def test_invalid_queue_argument(self, dispatcher, alice) -> None:
        responder = await _run(dispatcher, _cmd("enqueue", alice.id, queue_name="nope"))
        assert responder.final_text.startswith("Command Parse Error:")


class TestAuthorization:
    async def test_student_cannot_start(self, dispatcher, server, alice) -> None:
        responder = await _run(dispatcher, _cmd("start", alice.id))
        assert responder.final_text.startswith("Authorization Error:")
        assert server.active_helpers == {}

    async def test_staff_cannot_create_queue(self, dispatcher, server, staff) -> None:
        responder = await _run(
            dispatcher, _cmd("queue", staff.id, subcommand="add", queue_name="new"),
        )
        assert responder.final_text.startswith("Authorization Error:")
        assert "new" not in server.queues

    async def test_admin_creates_and_removes_queue(self, dispatcher, server, admin) -> None:
        responder = await _run(
            dispatcher, _cmd("queue", admin.id, subcommand="add", queue_name="new"),
        )
        assert responder.final_text == "Successfully created `new`."
        assert "new" in server.queues

        responder = await _run(
            dispatcher, _cmd("queue", admin.id, subcommand="remove", queue_name="new"),
        )
        assert responder.final_text == "Successfully deleted `new`."
        assert "new" not in server.queues

    async def test_queue_remove_from_own_channel_rejected(self, dispatcher, server, admin) -> None:
        responder = await _run(dispatcher, _cmd(
            "queue", admin.id, subcommand="remove", queue_name="labs", channel_id="chan-labs",
        ))
        assert responder.final_text.startswith("Command Parse Error in `labs`:")
        assert "labs" in server.queues

    async def test_clear_requires_queue_role(self, dispatcher, server, staff, staff2, alice) -> None:
        await _run(dispatcher, _cmd("start", staff.id))
        await _run(dispatcher, _cmd("enqueue", alice.id, queue_name="office-hours"))

        responder = await _run(dispatcher, _cmd("clear", staff2.id, queue_name="office-hours"))
        assert responder.final_text.startswith(
            "Authorization Error: You don't have permission to clear `office-hours`."
        )
        assert server.queues["office-hours"].length == 1

        responder = await _run(dispatcher, _cmd("clear", staff.id, queue_name="office-hours"))
        assert responder.final_text == "Everyone in queue `office-hours` was removed."
        assert server.queues["office-hours"].length == 0

    async def test_cleanup_queue_rejected_inside_queue_channel(self, dispatcher, admin) -> None:
        responder = await _run(dispatcher, _cmd(
            "cleanup_queue", admin.id, queue_name="labs", channel_id="chan-office-hours",
        ))
        assert responder.final_text == (
            "Command Parse Error in `labs`: Please use this command outside the queue."
        )


class TestFlows:
    async def test_full_session(self, dispatcher, server, staff, alice, bob) -> None:
        await _run(dispatcher, _cmd("start", staff.id, mute_notif=True))
        await _run(dispatcher, _button("join", alice.id, "office-hours"))
        await _run(dispatcher, _cmd("enqueue", bob.id, queue_name="labs"))

        responder = await _run(dispatcher, _cmd("next", staff.id))
        assert responder.final_text == "An invite has been sent to Alice."

        responder = await _run(dispatcher, _cmd("next", staff.id))
        assert responder.final_text == "An invite has been sent to Bob."

        responder = await _run(dispatcher, _cmd("stop", staff.id))
        assert responder.final_text.startswith("You helped for ")
        assert server.active_helpers == {}

    async def test_next_targeted_user(self, dispatcher, staff, alice, bob) -> None:
        await _run(dispatcher, _cmd("start", staff.id))
        await _run(dispatcher, _cmd("enqueue", alice.id, queue_name="labs"))
        await _run(dispatcher, _cmd("enqueue", bob.id, queue_name="labs"))
        responder = await _run(dispatcher, _cmd("next", staff.id, user=bob.id))
        assert responder.final_text == "An invite has been sent to Bob."

    async def test_leave_and_subscribe_buttons(self, dispatcher, server, staff, alice) -> None:
        await _run(dispatcher, _cmd("start", staff.id))
        await _run(dispatcher, _button("join", alice.id, "labs"))
        responder = await _run(dispatcher, _button("leave", alice.id, "labs"))
        assert responder.final_text == "Successfully left `labs`."

        await _run(dispatcher, _button("notif", alice.id, "labs"))
        responder = await _run(dispatcher, _button("notif", alice.id, "labs"))
        assert responder.final_text.startswith("Queue Error in `labs`:")
        responder = await _run(dispatcher, _button("removeN", alice.id, "labs"))
        assert responder.final_text == "Successfully left the notification squad of `labs`."

    async def test_list_helpers_table(self, dispatcher, staff, alice) -> None:
        await _run(dispatcher, _cmd("start", staff.id))
        responder = await _run(dispatcher, _cmd("list_helpers", alice.id))
        assert "Ada" in responder.final_text
        assert "office-hours" in responder.final_text

    async def test_auto_clear_validation(self, dispatcher, server, admin) -> None:
        responder = await _run(
            dispatcher, _cmd("set_queue_auto_clear", admin.id, hours=0, enable=True),
        )
        assert responder.final_text.startswith("Command Parse Error:")

        responder = await _run(
            dispatcher, _cmd("set_queue_auto_clear", admin.id, hours=2.5, enable=True),
        )
        assert responder.final_text == "Successfully changed the auto clear timeout to be 2.5 hours."
        assert server.auto_clear == (2.5, True)

    async def test_after_session_modal(self, dispatcher, server, admin) -> None:
        request = InteractionRequest(
            kind=InteractionKind.MODAL_SUBMIT,
            name="after_session_message_modal",
            server_id="srv-1",
            user_id=admin.id,
            options={"message": "Thanks for coming!"},
        )
        responder = await _run(dispatcher, request)
        assert responder.final_text == "After session message has been updated."
        assert server.after_session_message == "Thanks for coming!"


class TestLogging:
    async def test_interactions_and_errors_logged(self, dispatcher, server, log_sink, admin, alice) -> None:
        await _run(dispatcher, _cmd("set_logging_channel", admin.id, channel="bot-log"))
        await _run(dispatcher, _cmd("enqueue", alice.id, queue_name="labs"))
        await asyncio.sleep(0.05)
        kinds = [e.kind for _, e in log_sink.events]
        assert "interaction" in kinds
        assert "error" in kinds
        assert {target for target, _ in log_sink.events} == {"bot-log"}

    async def test_unexpected_error_reaches_log_sink(self, dispatcher, server, log_sink, admin, alice) -> None:
        await _run(dispatcher, _cmd("set_logging_channel", admin.id, channel="bot-log"))
        responder = await _run(dispatcher, _cmd("boom", alice.id))
        await asyncio.sleep(0.05)

        assert responder.final_text.startswith("Error: Something went wrong")
        errors = [e for _, e in log_sink.events if e.kind == "error"]
        assert len(errors) == 1
        assert errors[0].detail == {"interaction": "boom", "error": "RuntimeError"}
        assert "kaboom" in errors[0].summary

    async def test_log_sink_failure_does_not_block(self, dispatcher, server, log_sink, admin) -> None:
        async def broken(target, event):
            raise ConnectionError("sink down")

        log_sink.record = broken
        await _run(dispatcher, _cmd("set_logging_channel", admin.id, channel="bot-log"))
        responder = await _run(dispatcher, _cmd("stop_logging", admin.id))
        assert responder.final_text == "Successfully stopped logging."
        assert server.logging_channel is None
