from __future__ import annotations

import json
from typing import Any

from typer.testing import CliRunner

from app import cli as cli_module


runner = CliRunner()


def test_cli_help():
    result = runner.invoke(cli_module.cli, ["--help"])
    assert result.exit_code == 0
    assert "serve" in result.output and "search" in result.output


def test_cli_ask_prints_reply(monkeypatch):
    async def fake_generate(message: str, history=None, **_: Any) -> dict[str, Any]:
        return {"message": f"echo: {message}", "service": None}

    monkeypatch.setattr(cli_module, "generate_chat_response", fake_generate)
    result = runner.invoke(cli_module.cli, ["ask", "hello"])
    assert result.exit_code == 0
    assert json.loads(result.output) == {"message": "echo: hello", "service": None}


def test_cli_videos_and_blank_query():
    result = runner.invoke(cli_module.cli, ["videos", "asthma"])
    assert result.exit_code == 0
    assert json.loads(result.output)["videos"][0]["title"] == "Understanding asthma"

    blank = runner.invoke(cli_module.cli, ["search", "  "])
    assert blank.exit_code == 1
    assert "No search query provided" in blank.output


def test_cli_config_print_masks_keys(monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "gsk-secret")
    result = runner.invoke(cli_module.cli, ["config", "print"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["groq_api_key"] == "***"
    assert "gsk-secret" not in result.output
