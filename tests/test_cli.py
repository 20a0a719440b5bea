"""Tests for the click CLI."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import click
import pytest
from click.testing import CliRunner
from PIL import Image

from aihub import cli as cli_module
from aihub.cli import cli
from aihub.models import Message, Role
from aihub.sessions import SessionRepository
from aihub.storage import PreferenceStore


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data = tmp_path / "aihub"
    monkeypatch.setattr(cli_module, "DATA_DIR", data)
    monkeypatch.setattr(cli_module, "PREFS_PATH", data / "preferences.db")
    return data


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def test_version(runner: CliRunner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "aihub" in result.output


def test_settings_set_and_show(runner: CliRunner, data_dir: Path):
    result = runner.invoke(
        cli, ["settings", "set", "--mistral-key", "abcdefghijkl", "--chat-model", "mistral-large-latest"]
    )
    assert result.exit_code == 0, result.output
    assert "Saved!" in result.output

    result = runner.invoke(cli, ["settings"])
    assert result.exit_code == 0
    assert "abcd…kl" in result.output
    assert "abcdefghijkl" not in result.output
    assert "mistral-large-latest" in result.output
    assert "not set" in result.output


def test_settings_set_keeps_other_values(runner: CliRunner, data_dir: Path):
    runner.invoke(cli, ["settings", "set", "--gemini-key", "g-key"])
    runner.invoke(cli, ["settings", "set", "--image-model", "pollinations"])

    store = PreferenceStore(data_dir / "preferences.db")
    s = store.load_settings()
    store.close()
    assert s.gemini_key == "g-key"
    assert s.image_model == "pollinations"


def test_settings_rejects_unknown_model(runner: CliRunner, data_dir: Path):
    result = runner.invoke(cli, ["settings", "set", "--chat-model", "gpt-4"])
    assert result.exit_code != 0


def test_new_list_show_delete(runner: CliRunner, data_dir: Path):
    result = runner.invoke(cli, ["new"])
    assert result.exit_code == 0
    session_id = result.output.strip()

    store = PreferenceStore(data_dir / "preferences.db")
    SessionRepository(store).append_message(session_id, Message(role=Role.USER, content="What is a monad?"))
    store.close()

    result = runner.invoke(cli, ["sessions"])
    assert "What is a monad?" in result.output
    assert session_id in result.output

    result = runner.invoke(cli, ["show", session_id])
    assert result.exit_code == 0
    assert "User: What is a monad?" in result.output

    result = runner.invoke(cli, ["delete", session_id])
    assert result.exit_code == 0

    result = runner.invoke(cli, ["sessions"])
    assert "No chats yet" in result.output


def test_show_unknown_session(runner: CliRunner, data_dir: Path):
    result = runner.invoke(cli, ["show", "missing"])
    assert result.exit_code == 1
    assert "Session not found: missing" in result.output


def test_chat_without_key_prints_notice(runner: CliRunner, data_dir: Path):
    result = runner.invoke(cli, ["chat"], input="hello\n/back\n")
    assert result.exit_code == 0, result.output
    assert "No Mistral Key!" in result.output


def test_chat_prompt_runs_off_the_event_loop(runner: CliRunner, data_dir: Path, monkeypatch: pytest.MonkeyPatch):
    threads = []

    def fake_prompt(*args, **kwargs):
        threads.append(threading.current_thread())
        return "/back"

    monkeypatch.setattr(click, "prompt", fake_prompt)

    result = runner.invoke(cli, ["chat"])

    assert result.exit_code == 0, result.output
    assert len(threads) == 1
    assert threads[0] is not threading.main_thread()


def test_image_without_key_fails(runner: CliRunner, data_dir: Path):
    result = runner.invoke(cli, ["image", "a fox", "-o", str(data_dir / "fox.png")])
    assert result.exit_code == 1
    assert "Set Gemini Key!" in result.output
    assert "No image generated." in result.output


def test_sketch_raster_only(runner: CliRunner, data_dir: Path, tmp_path: Path):
    strokes = tmp_path / "strokes.json"
    strokes.write_text(json.dumps([[[10, 10], [60, 60]], [[5, 70]]]))
    output = tmp_path / "out" / "sketch.png"

    result = runner.invoke(
        cli, ["sketch", str(strokes), "-o", str(output), "--raster-only", "--width", "80", "--height", "90"]
    )

    assert result.exit_code == 0, result.output
    with Image.open(output) as image:
        assert image.size == (80, 90)


def test_sketch_bad_json(runner: CliRunner, data_dir: Path, tmp_path: Path):
    strokes = tmp_path / "strokes.json"
    strokes.write_text("{nope")

    result = runner.invoke(cli, ["sketch", str(strokes), "--raster-only"])

    assert result.exit_code == 1
    assert "Could not read strokes" in result.output


def test_stats_without_data(runner: CliRunner, data_dir: Path):
    result = runner.invoke(cli, ["stats"])
    assert "No data found" in result.output


def test_stats(runner: CliRunner, data_dir: Path):
    runner.invoke(cli, ["new"])
    result = runner.invoke(cli, ["stats"])
    assert "Sessions:       1" in result.output


def test_reset(runner: CliRunner, data_dir: Path):
    runner.invoke(cli, ["new"])
    result = runner.invoke(cli, ["reset", "--yes"])
    assert result.exit_code == 0
    assert not data_dir.exists()
