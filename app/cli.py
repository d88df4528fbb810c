from __future__ import annotations

import asyncio
import json
import typer
import uvicorn

from app.core.chat_engine import generate_chat_response
from app.core.config import CONFIG_PATH, Settings, get_settings
from app.core.services import search_videos
from app.core.websearch import search_medical_information

cli = typer.Typer(name="medassist", help="MedAssist command line")
config_cli = typer.Typer(help="Configuration")

cli.add_typer(config_cli, name="config")


def _echo_json(payload: object) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@cli.command()
def serve() -> None:
    """Start the FastAPI server."""
    settings = get_settings()
    uvicorn.run("app.main:app", host=settings.host, port=settings.port)


@cli.command()
def ask(message: str) -> None:
    """Answer one chat message without history."""
    _echo_json(asyncio.run(generate_chat_response(message)))


@cli.command()
def search(query: str) -> None:
    """Run the medical search chain for a query."""
    if not query.strip():
        typer.echo("No search query provided")
        raise typer.Exit(code=1)
    _echo_json(asyncio.run(search_medical_information(query.strip())))


@cli.command()
def videos(query: str) -> None:
    """List videos for a query."""
    if not query.strip():
        typer.echo("No video search query provided")
        raise typer.Exit(code=1)
    _echo_json(search_videos(query.strip()))


@config_cli.command("print")
def config_print():
    s = Settings()
    data = s.model_dump()
    for key in ("groq_api_key", "perplexity_api_key", "elevenlabs_api_key"):
        if data.get(key):
            data[key] = "***"
    typer.echo(json.dumps(data, ensure_ascii=False, default=str))


@config_cli.command("edit")
def config_edit():
    path = CONFIG_PATH
    if not path.exists():
        path.write_text("{}", encoding="utf-8")
    typer.echo(str(path))


if __name__ == "__main__":
    cli()
