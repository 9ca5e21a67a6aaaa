"""Tests for the server entry point (helpqueue.cli.run) and console renderer."""

from __future__ import annotations

import json
from io import StringIO
from pathlib import Path
from unittest.mock import patch

import pytest
from rich.console import Console

from helpqueue.cli.console import ConsoleRenderer
from helpqueue.cli.run import _build_parser, _load_layout, main
from helpqueue.runtime.queue.view import QueueChannel, QueueViewModel

LAYOUT = {
    "servers": [{
        "server_id": "cs101",
        "name": "CS 101",
        "queues": [{"name": "office-hours"}],
        "members": [{"id": "u1", "display_name": "Ada", "roles": ["Staff"]}],
    }],
}


@pytest.fixture()
def parser():
    return _build_parser()


@pytest.fixture()
def layout_file(tmp_path: Path) -> Path:
    path = tmp_path / "layout.json"
    path.write_text(json.dumps(LAYOUT))
    return path


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


class TestBuildParser:
    def test_defaults(self, parser):
        args = parser.parse_args([])
        assert args.layout is None
        assert args.host == "0.0.0.0"
        assert args.port is None
        assert args.log_level is None
        assert args.no_extensions is False

    def test_short_flags(self, parser):
        args = parser.parse_args(["-l", "x.json", "-p", "9000"])
        assert args.layout == "x.json"
        assert args.port == 9000

    def test_no_extensions(self, parser):
        assert parser.parse_args(["--no-extensions"]).no_extensions is True

    def test_port_must_be_int(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["--port", "eighty"])


# ---------------------------------------------------------------------------
# Layout loading
# ---------------------------------------------------------------------------


class TestLoadLayout:
    def test_valid(self, parser, layout_file):
        layout = _load_layout(parser.parse_args(["--layout", str(layout_file)]))
        assert [s.server_id for s in layout.servers] == ["cs101"]
        assert layout.servers[0].queue_channels()[0].channel_id == "cs101:office-hours"

    def test_default_path_under_data_dir(self, parser, data_dir):
        (data_dir / "layout.json").write_text(json.dumps(LAYOUT))
        layout = _load_layout(parser.parse_args([]))
        assert len(layout.servers) == 1

    def test_missing_file_exits(self, parser, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            _load_layout(parser.parse_args(["--layout", str(tmp_path / "absent.json")]))
        assert exc_info.value.code == 1

    def test_invalid_json_exits(self, parser, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{nope")
        with pytest.raises(SystemExit):
            _load_layout(parser.parse_args(["--layout", str(path)]))

    def test_schema_violation_exits(self, parser, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"servers": [{"server_id": ""}]}))
        with pytest.raises(SystemExit):
            _load_layout(parser.parse_args(["--layout", str(path)]))


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------


class TestMain:
    def test_runs_app_on_requested_port(self, layout_file):
        with patch("helpqueue.cli.run.web.run_app") as run_app:
            main(["--layout", str(layout_file), "--port", "9123", "--no-extensions"])
        run_app.assert_called_once()
        app_coro = run_app.call_args.args[0]
        app_coro.close()
        assert run_app.call_args.kwargs["port"] == 9123
        assert run_app.call_args.kwargs["host"] == "0.0.0.0"


# ---------------------------------------------------------------------------
# Console renderer
# ---------------------------------------------------------------------------


def _view(students: tuple[str, ...] = (), is_open: bool = True) -> QueueViewModel:
    return QueueViewModel(
        name="labs", helper_ids=("<@u1>",), student_display_names=students, is_open=is_open,
    )


class TestConsoleRenderer:
    async def test_draws_panel(self):
        out = StringIO()
        renderer = ConsoleRenderer(Console(file=out, width=80, color_system=None))
        await renderer.render_queue(QueueChannel("labs", "c-1"), _view(("Alice", "Bob")))
        text = out.getvalue()
        assert "labs" in text
        assert "OPEN" in text
        assert "Alice" in text and "Bob" in text
        assert "2 waiting" in text

    async def test_skips_identical_redraw(self):
        out = StringIO()
        renderer = ConsoleRenderer(Console(file=out, width=80, color_system=None))
        channel = QueueChannel("labs", "c-1")
        await renderer.render_queue(channel, _view())
        first = out.getvalue()
        await renderer.render_queue(channel, _view())
        assert out.getvalue() == first

    async def test_forced_redraw_prints_again(self):
        out = StringIO()
        renderer = ConsoleRenderer(Console(file=out, width=80, color_system=None))
        channel = QueueChannel("labs", "c-1")
        await renderer.render_queue(channel, _view())
        first = out.getvalue()
        await renderer.render_queue(channel, _view(), force_full_redraw=True)
        assert len(out.getvalue()) > len(first)
        assert "c-1" in out.getvalue()[len(first):]

    async def test_clear_surface_forgets_last_view(self):
        out = StringIO()
        renderer = ConsoleRenderer(Console(file=out, width=80, color_system=None))
        channel = QueueChannel("labs", "c-1")
        await renderer.render_queue(channel, _view())
        await renderer.clear_surface(channel)
        first = out.getvalue()
        await renderer.render_queue(channel, _view())
        assert len(out.getvalue()) > len(first)
