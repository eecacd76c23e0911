"""Tests for the command line interface."""

import base64
from unittest.mock import AsyncMock, patch

from aibridge import cli
from aibridge.types import CANCELLED, CompletionResponse, Done, Provider, Token


def test_providers_lists_everything(capsys):
    assert cli.main(["providers"]) == 0

    out = capsys.readouterr().out
    for provider in Provider:
        assert provider.value in out
    assert "https://api.anthropic.com/v1/messages" in out


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_ask_prints_answer(tmp_path, capsys, monkeypatch):
    monkeypatch.chdir(tmp_path)
    source = tmp_path / "main.py"
    source.write_text("print('hi')\n")
    image = tmp_path / "shot.png"
    image.write_bytes(b"\x89PNG fake")

    complete = AsyncMock(return_value=CompletionResponse(text="hello", model="gpt-4o", tokens_used=5))
    with patch("aibridge.cli.BridgeClient.complete", complete):
        code = cli.main(
            [
                "ask",
                "Explain",
                "--provider",
                "openai",
                "--context",
                str(source),
                "--image",
                str(image),
            ]
        )

    assert code == 0
    out = capsys.readouterr().out
    assert "hello" in out
    assert "model=gpt-4o tokens=5" in out

    request = complete.call_args.args[0]
    assert request.provider is Provider.OPENAI
    assert request.context_chunks[0].startswith(f"### {source}\n```py\n")
    assert request.image_base64 == base64.b64encode(b"\x89PNG fake").decode()


def test_ask_stream(tmp_path, capsys, monkeypatch):
    monkeypatch.chdir(tmp_path)

    async def fake_stream(self, request, sink):
        sink(Token("Hel"))
        sink(Token("lo"))
        done = Done(text="Hello", model="m")
        sink(done)
        return done

    with patch("aibridge.cli.BridgeClient.stream", fake_stream):
        code = cli.main(["ask", "hi", "--provider", "deepseek", "--stream"])

    assert code == 0
    assert "Hello" in capsys.readouterr().out


def test_ask_missing_key_exits_1(tmp_path, capsys, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    code = cli.main(["ask", "hi", "--provider", "openai"])

    assert code == 1
    assert "OpenAI API key is required" in capsys.readouterr().out


def test_ask_cancelled_exits_130(tmp_path, capsys, monkeypatch):
    monkeypatch.chdir(tmp_path)

    with patch("aibridge.cli.BridgeClient.complete", AsyncMock(return_value=CANCELLED)):
        code = cli.main(["ask", "hi", "--provider", "local", "--endpoint", "http://127.0.0.1:1"])

    assert code == cli.EXIT_CANCELLED
    assert "Cancelled" in capsys.readouterr().out


def test_ask_local_without_endpoint(tmp_path, capsys, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("LOCAL_LLM_ENDPOINT", raising=False)

    code = cli.main(["ask", "hi", "--provider", "local"])

    assert code == 2
    assert "Local LLM server URL is required" in capsys.readouterr().out


def test_ask_trace_flag_exports_spans(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    complete = AsyncMock(return_value=CompletionResponse(text="ok", model="m"))
    with patch("aibridge.cli.BridgeClient.complete", complete), patch(
        "aibridge.cli.init_telemetry", return_value=True
    ) as init, patch("aibridge.cli.shutdown_telemetry") as shutdown:
        code = cli.main(["ask", "hi", "--provider", "openai", "--trace", "console"])

    assert code == 0
    assert init.call_args.kwargs["exporter"] == "console"
    shutdown.assert_called_once()


def test_ask_without_trace_skips_shutdown(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    complete = AsyncMock(return_value=CompletionResponse(text="ok", model="m"))
    with patch("aibridge.cli.BridgeClient.complete", complete), patch(
        "aibridge.cli.shutdown_telemetry"
    ) as shutdown:
        assert cli.main(["ask", "hi", "--provider", "openai"]) == 0

    shutdown.assert_not_called()
