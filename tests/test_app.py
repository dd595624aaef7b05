"""Tests for the command line entry point."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from codek import app
from codek.ai.client import AIClient
from codek.ai.errors import ErrorKind
from codek.ai.tools import WRITE_FILE_DEFINITION
from codek.services.settings import Settings

from tests.helpers import DONE, text_chunk, text_turn, tool_turn


class _TTY(io.StringIO):
    def isatty(self) -> bool:
        return True


@pytest.fixture(autouse=True)
def _log_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CODEK_LOG_DIR", str(tmp_path / "logs"))


def _settings(workspace: Path) -> Settings:
    return Settings(
        base_url="http://llm.test/v1",
        api_key="sk-test",
        model="test-model",
        workspace_root=str(workspace),
    )


def _scripted_client(settings: Settings, turns: list[list[str]], requests: list[dict[str, Any]]) -> AIClient:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        if not turns:
            return httpx.Response(500, text="unexpected request")
        body = "\n\n".join(turns.pop(0)) + "\n\n"
        return httpx.Response(200, headers={"Content-Type": "text/event-stream"}, content=body.encode("utf-8"))

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AIClient(settings.to_client_settings(), http_client=http_client)


# -----------------------------------------------------------------------------
# --set coercion
# -----------------------------------------------------------------------------


class TestCliOverrides:
    def test_values_follow_field_types(self) -> None:
        overrides = app._coerce_cli_overrides(
            [
                "max_turns=3",
                "temperature=0.5",
                "debug_logging=on",
                "organization=acme",
                "tool_timeout=none",
                'default_headers={"X-Trace": "1"}',
            ]
        )

        assert overrides == {
            "max_turns": 3,
            "temperature": 0.5,
            "debug_logging": True,
            "organization": "acme",
            "tool_timeout": None,
            "default_headers": {"X-Trace": "1"},
        }

    def test_optional_float_accepts_number(self) -> None:
        assert app._coerce_cli_overrides(["tool_timeout=2.5"]) == {"tool_timeout": 2.5}

    @pytest.mark.parametrize(
        "entry",
        ["max_turns", "=3", "colour=blue", "max_turns=many", "debug_logging=maybe", "default_headers=[1]"],
    )
    def test_invalid_entries(self, entry: str) -> None:
        with pytest.raises(ValueError):
            app._coerce_cli_overrides([entry])


# -----------------------------------------------------------------------------
# main()
# -----------------------------------------------------------------------------


class TestMain:
    def test_dump_settings_redacts_secret(self, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = app.main(["--dump-settings", "--set", "api_key=sk-abcdef123456", "--model", "other"])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output["settings"]["api_key"] == "sk***********56"
        assert output["settings"]["model"] == "other"
        assert output["meta"]["cli_overrides"] == ["api_key", "model"]

    def test_bad_override_is_usage_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert app.main(["--set", "nonsense"]) == app.EXIT_USAGE
        assert "Invalid --set override" in capsys.readouterr().err

    def test_missing_prompt_is_usage_error(
        self,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO(""))

        assert app.main([]) == app.EXIT_USAGE
        assert "No prompt given" in capsys.readouterr().err

    def test_prompt_read_from_stdin(self) -> None:
        assert app._read_prompt([], io.StringIO("  explain this\n")) == "explain this"
        assert app._read_prompt(["a", "b"], io.StringIO("ignored")) == "a b"
        assert app._read_prompt([], _TTY("typed")) == ""


# -----------------------------------------------------------------------------
# run_conversation()
# -----------------------------------------------------------------------------


class TestRunConversation:
    @pytest.mark.asyncio
    async def test_streams_answer_to_stdout(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path)
        requests: list[dict[str, Any]] = []
        client = _scripted_client(settings, [text_turn("Hello", ", world")], requests)
        stdout, stderr = io.StringIO(), io.StringIO()

        exit_code = await app.run_conversation(
            settings, "hi", client=client, stdout=stdout, stderr=stderr
        )

        assert exit_code == app.EXIT_OK
        assert stdout.getvalue() == "Hello, world\n"
        assert stderr.getvalue() == ""
        messages = requests[0]["messages"]
        assert messages[0]["role"] == "system"
        assert "### `readFile`" in messages[0]["content"]
        assert messages[1] == {"role": "user", "content": "hi"}
        assert [t["function"]["name"] for t in requests[0]["tools"]] == ["readFile", "writeFile", "createFile"]

    @pytest.mark.asyncio
    async def test_no_tools(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path)
        requests: list[dict[str, Any]] = []
        client = _scripted_client(settings, [text_turn("ok")], requests)

        await app.run_conversation(
            settings, "hi", tools_enabled=False, client=client, stdout=io.StringIO(), stderr=io.StringIO()
        )

        assert "tools" not in requests[0]
        assert "No tools are currently available." in requests[0]["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_transport_failure_sets_exit_code(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path)
        client = _scripted_client(settings, [], [])
        stderr = io.StringIO()

        exit_code = await app.run_conversation(
            settings, "hi", client=client, stdout=io.StringIO(), stderr=stderr
        )

        assert exit_code == app.EXIT_FAILED
        assert stderr.getvalue().startswith("Error (TransportError): HTTP 500")

    @pytest.mark.asyncio
    async def test_auto_approved_create_file(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path)
        requests: list[dict[str, Any]] = []
        arguments = json.dumps({"filePath": "hello.txt", "content": "hi there"})
        client = _scripted_client(
            settings,
            [tool_turn(("call_1", "createFile", arguments)), text_turn("Created.")],
            requests,
        )
        stdout = io.StringIO()

        exit_code = await app.run_conversation(
            settings, "make a file", auto_approve=True, client=client, stdout=stdout, stderr=io.StringIO()
        )

        assert exit_code == app.EXIT_OK
        assert (tmp_path / "hello.txt").read_text(encoding="utf-8") == "hi there"
        tool_message = requests[1]["messages"][-1]
        assert tool_message["tool_call_id"] == "call_1"
        assert json.loads(tool_message["content"])["success"] is True
        assert stdout.getvalue() == "Created.\n"

    @pytest.mark.asyncio
    async def test_approval_denied_without_terminal(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO(""))
        settings = _settings(tmp_path)
        requests: list[dict[str, Any]] = []
        arguments = json.dumps({"filePath": "hello.txt", "content": "hi"})
        client = _scripted_client(
            settings,
            [tool_turn(("call_1", "createFile", arguments)), [text_chunk("Okay."), DONE]],
            requests,
        )

        exit_code = await app.run_conversation(
            settings, "make a file", client=client, stdout=io.StringIO(), stderr=io.StringIO()
        )

        assert exit_code == app.EXIT_OK
        assert not (tmp_path / "hello.txt").exists()
        payload = json.loads(requests[1]["messages"][-1]["content"])
        assert payload["kind"] == "ApprovalDenied"


# -----------------------------------------------------------------------------
# Terminal adapters
# -----------------------------------------------------------------------------


class TestTerminalApproval:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(("answer", "expected"), [("y\n", True), ("yes\n", True), ("\n", False), ("no\n", False)])
    async def test_answers(self, answer: str, expected: bool) -> None:
        stderr = io.StringIO()
        approval = app.TerminalApproval(stdin=_TTY(answer), stderr=stderr)

        decision = await approval(WRITE_FILE_DEFINITION, {"filePath": "a.txt"})

        assert decision is expected
        assert 'Allow writeFile {"filePath": "a.txt"}? [y/N]' in stderr.getvalue()


def test_console_callback_reports_errors() -> None:
    stdout, stderr = io.StringIO(), io.StringIO()
    callback = app.ConsoleCallback(stdout=stdout, stderr=stderr)

    callback.on_text_delta("partial")
    callback.on_error(ErrorKind.CANCELLED, "Turn cancelled")

    assert stdout.getvalue() == "partial\n"
    assert stderr.getvalue() == "Error (Cancelled): Turn cancelled\n"
