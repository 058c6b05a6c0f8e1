"""Console script for dtpush."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ._constants import ENV_API_TOKEN, ENV_TENANT_URL
from ._errors import DtPushError
from ._invocation import AsyncNotification, PipelineJob, classify
from ._models import DtConfig
from ._monspec import get_all_tag_rules, parse_monspec
from ._normalizer import normalize_direct_call
from ._submit import submit

app = typer.Typer(help='Push deployment and annotation events to Dynatrace.')
console = Console()


def _load_json(path: Path) -> dict:
    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, ValueError) as e:
        console.print(f'[red]Cannot read {path}:[/red] {e}')
        raise typer.Exit(code=2)
    if not isinstance(data, dict):
        console.print(f'[red]{path} must contain a JSON object[/red]')
        raise typer.Exit(code=2)
    return data


@app.command()
def send(
    file: Path = typer.Argument(..., help='JSON file with the event body.'),
    tenant_url: Optional[str] = typer.Option(
        None, '--tenant-url', envvar=ENV_TENANT_URL,
        help='Dynatrace tenant URL.'),
    token: Optional[str] = typer.Option(
        None, '--token', envvar=ENV_API_TOKEN,
        help='Dynatrace API token.'),
):
    """Send the event in FILE to Dynatrace, as a direct call would."""
    invocation = classify(_load_json(file))
    if isinstance(invocation, (PipelineJob, AsyncNotification)):
        console.print('[red]Only direct-call payloads can be sent '
                      'from the command line[/red]')
        raise typer.Exit(code=2)

    config = DtConfig(api_token=token, tenant_url=tenant_url)
    outcome = submit(normalize_direct_call(invocation), config)

    if outcome.ok:
        console.print(f'[green]{outcome.message}[/green]')
        return

    console.print(f'[red]{outcome.kind.value}[/red]: {outcome.message}')
    raise typer.Exit(code=1)


@app.command('tag-rules')
def tag_rules(
    monspec: Path = typer.Argument(..., help='monspec.json file.'),
    environment: str = typer.Argument(..., help='Environment name.'),
):
    """Print the Dynatrace tag rules for ENVIRONMENT in MONSPEC."""
    try:
        spec = parse_monspec(monspec.read_text(encoding='utf-8'))
    except (OSError, DtPushError) as e:
        console.print(f'[red]Cannot read {monspec}:[/red] {e}')
        raise typer.Exit(code=2)

    console.print_json(data=get_all_tag_rules(spec, environment))


@app.command('classify')
def classify_cmd(
    file: Path = typer.Argument(..., help='JSON file with a Lambda event.'),
):
    """Print which kind of invocation the event in FILE is."""
    invocation = classify(_load_json(file))
    console.print(type(invocation).__name__)


if __name__ == '__main__':
    app()
