from __future__ import annotations

import json
import mimetypes
from pathlib import Path

import click

from apps.api.services.books import BookExtractionError, extract_book
from utils.logging import configure_logging


@click.group(help="Manage the AI book chat service.")
def cli() -> None:
    configure_logging()


@cli.command("init-db", help="Create the database tables if they are missing.")
def init_db_command() -> None:
    from apps.api.db.init import init_db
    from core.config import settings

    init_db()
    click.echo(f"Database ready at {settings.database_url}")


@cli.command(help="Run the API with uvicorn.")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.option("--reload", is_flag=True, default=False, help="Restart on code changes")
def serve(host: str, port: int, reload: bool) -> None:
    import uvicorn

    uvicorn.run("apps.api.main:app", host=host, port=port, reload=reload)


@cli.command(help="Print the title and text extracted from a book file.")
@click.argument("input_path", type=click.Path(path_type=Path, exists=True, readable=True))
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit a JSON object")
def extract(input_path: Path, as_json: bool) -> None:
    content_type, _ = mimetypes.guess_type(input_path.name)
    try:
        book = extract_book(input_path, filename=input_path.name, content_type=content_type)
    except BookExtractionError as exc:
        raise click.ClickException(str(exc)) from exc
    if not book.supported:
        raise click.ClickException(f"Unsupported file format: {input_path.name}")
    if as_json:
        click.echo(json.dumps({"title": book.title, "text": book.text}, ensure_ascii=False))
        return
    click.echo(book.title)
    click.echo()
    click.echo(book.text)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    cli()
