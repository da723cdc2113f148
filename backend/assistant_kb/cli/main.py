"""CLI entrypoint for the assistant knowledge base."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

import requests
import typer

app = typer.Typer(name="akb", help="Assistant knowledge base command-line interface")

DEFAULT_HOST = "http://127.0.0.1:5173"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("AKB_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    try:
        resp = requests.request(method, url, timeout=120, **kwargs)
    except requests.RequestException as exc:
        typer.echo(f"Request failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


def _echo(resp: requests.Response) -> None:
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def upload(
    owner: str = typer.Argument(..., help="Assistant identifier"),
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="PDF file to upload"),
    process: bool = typer.Option(True, "--process/--no-process", help="Process the document after upload"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Upload a PDF and, by default, process it straight away."""
    path = path.expanduser()
    resp = _request(
        "POST",
        f"/assistants/{owner}/documents",
        host=host,
        params={"name": path.name},
        data=path.read_bytes(),
        headers={"Content-Type": "application/pdf"},
    )
    document = resp.json()
    if not process:
        typer.echo(json.dumps(document, indent=2))
        return
    _echo(_request("POST", f"/documents/{document['id']}/process", host=host))


@app.command()
def process(
    document_id: str = typer.Argument(..., help="Document identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Process (or re-process) an uploaded document."""
    _echo(_request("POST", f"/documents/{document_id}/process", host=host))


@app.command()
def documents(
    owner: str = typer.Argument(..., help="Assistant identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List an assistant's documents."""
    _echo(_request("GET", f"/assistants/{owner}/documents", host=host))


@app.command()
def search(
    owner: str = typer.Argument(..., help="Assistant identifier"),
    q: str = typer.Argument(..., help="Query text"),
    k: Optional[int] = typer.Option(None, "--k", help="Number of results to return"),
    threshold: Optional[float] = typer.Option(None, "--threshold", help="Minimum cosine similarity"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Run a similarity search over an assistant's chunks."""
    payload: dict[str, object] = {"query": q}
    if k is not None:
        payload["k"] = k
    if threshold is not None:
        payload["threshold"] = threshold
    _echo(_request("POST", f"/assistants/{owner}/search", host=host, json=payload))


@app.command()
def ask(
    owner: str = typer.Argument(..., help="Assistant identifier"),
    message: str = typer.Argument(..., help="Question for the assistant"),
    instructions: str = typer.Option("You are a helpful assistant.", "--instructions", help="System instructions"),
    context_only: bool = typer.Option(False, "--context-only", help="Show the grounding context without calling the model"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Ask a question grounded in the assistant's documents."""
    payload = {"message": message, "instructions": instructions}
    route = "context" if context_only else "respond"
    _echo(_request("POST", f"/assistants/{owner}/{route}", host=host, json=payload))


@app.command()
def purge(
    owner: str = typer.Argument(..., help="Assistant identifier"),
    document: Optional[str] = typer.Option(None, "--document", help="Only purge chunks of this document"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Delete an assistant's chunks."""
    _echo(_request("POST", f"/assistants/{owner}/purge", host=host, json={"document_id": document}))


@app.command()
def reset(
    owner: str = typer.Argument(..., help="Assistant identifier"),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Remove every chunk, document and stored file of an assistant."""
    if not yes:
        typer.confirm(f"Reset all knowledge for {owner}?", abort=True)
    _echo(_request("POST", f"/assistants/{owner}/reset", host=host))


@app.command()
def remove(
    owner: str = typer.Argument(..., help="Assistant identifier"),
    document_id: str = typer.Argument(..., help="Document identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Remove one document with its chunks and stored file."""
    _echo(_request("DELETE", f"/assistants/{owner}/documents/{document_id}", host=host))


if __name__ == "__main__":
    app()
