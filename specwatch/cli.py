"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

import importlib
import json
import sys
from enum import Enum
from pathlib import Path
from typing import Any

import requests
import typer
import yaml
from rich.console import Console
from rich.table import Table

from specwatch.core.config import GeneratorConfig, init_app_config
from specwatch.core.logging import get_logger
from specwatch.generator import SpecGenerator
from specwatch.utils.package_info import get_version, load_package_info

console = Console()

app = typer.Typer(help="specwatch - Swagger documents inferred from live traffic")

logger = get_logger("specwatch.cli")


class OutputFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"


def configure_app(debug: bool = False):
    """
    Configure the application with the specified settings.

    Args:
    ----
        debug: Whether to enable debug mode

    """
    config = init_app_config(debug=debug)
    config.configure_logging()
    return config


def _show_version(value: bool):
    if value:
        console.print(f"specwatch version: {get_version()}")
        raise typer.Exit()


@app.callback()
def callback(
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode with verbose logging"),
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Show the application version and exit"
    ),
):
    """
    specwatch - observe a running server and document its API.

    Use --debug to enable verbose logging.
    """
    configure_app(debug=debug)


def import_object(reference: str) -> Any:
    """
    Import an object from a "package.module:attribute" reference.

    Raises:
        typer.BadParameter: If the reference is malformed or cannot be imported
    """
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter(f"Expected MODULE:ATTRIBUTE, got '{reference}'")
    if str(Path.cwd()) not in sys.path:
        sys.path.insert(0, str(Path.cwd()))
    try:
        target = importlib.import_module(module_name)
        for part in attribute.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError) as e:
        raise typer.BadParameter(f"Cannot import '{reference}': {e}")
    return target


@app.command("serve")
def serve(
    target: str = typer.Argument(..., help="ASGI application as MODULE:APP"),
    host: str = typer.Option("127.0.0.1", help="Interface to bind"),
    port: int = typer.Option(8000, help="Port to listen on"),
    patch: str | None = typer.Option(None, help="Patch function as MODULE:FUNCTION"),
    package_info: Path | None = typer.Option(None, help="Project metadata directory or file"),
    spec_path: str | None = typer.Option(None, help="Path serving the inferred document (default /api-spec)"),
):
    """
    Serve an application with traffic observation enabled.
    """
    import uvicorn

    application = import_object(target)
    patch_fn = import_object(patch) if patch else None

    overrides = {}
    if spec_path is not None:
        overrides["spec_path"] = spec_path
    if package_info is not None:
        overrides["package_info_path"] = str(package_info)

    instance = SpecGenerator(GeneratorConfig.from_env(**overrides))
    instance.init(application, patch_fn)
    logger.debug(f"Serving {target}", context={"host": host, "port": port, "attached": instance.attached})
    if not instance.attached:
        console.print(f"Could not observe {target}: it is not a Starlette or FastAPI application", style="red")
        raise typer.Exit(code=1)

    console.print(f"Document available at http://{host}:{port}{instance.config.spec_path}", style="green")
    uvicorn.run(application, host=host, port=port)


def _load_document(source: str, timeout: float) -> dict:
    if source.startswith(("http://", "https://")):
        response = requests.get(source, timeout=timeout)
        response.raise_for_status()
        return response.json()
    with open(source) as f:
        return json.load(f)


def _render(document: dict, output_format: OutputFormat) -> str:
    if output_format == OutputFormat.YAML:
        return yaml.safe_dump(document, sort_keys=False)
    return json.dumps(document, indent=2)


@app.command("fetch")
def fetch(
    url: str = typer.Argument(..., help="URL of a running server's document endpoint"),
    output_file: Path | None = typer.Option(None, "--output", "-o", help="Write the document to this file"),
    output_format: OutputFormat = typer.Option(OutputFormat.JSON, "--format", help="Output format"),
    timeout: float = typer.Option(10.0, help="Request timeout in seconds"),
):
    """
    Download the inferred document from a running server.
    """
    try:
        document = _load_document(url, timeout)
    except (requests.RequestException, OSError, ValueError) as e:
        logger.debug(f"Fetching {url} failed", exc_info=True)
        console.print(f"Error: could not fetch {url}: {e}", style="red")
        raise typer.Exit(code=1)

    rendered = _render(document, output_format)
    if output_file:
        output_file.write_text(rendered)
        console.print(f"Document written to {output_file}", style="green")
    else:
        typer.echo(rendered)


@app.command("list-endpoints")
def list_endpoints(
    source: str = typer.Argument(..., help="Document URL or JSON file"),
    timeout: float = typer.Option(10.0, help="Request timeout in seconds"),
):
    """
    List the operations of an inferred document.
    """
    try:
        document = _load_document(source, timeout)
    except (requests.RequestException, OSError, ValueError) as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(code=1)

    table = Table(title=document.get("info", {}).get("title", "API"))
    table.add_column("Method")
    table.add_column("Path")
    table.add_column("Responses")
    table.add_column("Security")

    for path, operations in document.get("paths", {}).items():
        for method, operation in operations.items():
            table.add_row(
                method.upper(),
                path,
                ", ".join(operation.get("responses", {})),
                ", ".join(next(iter(ref)) for ref in operation.get("security", [])),
            )

    console.print(table)


@app.command("info")
def info(path: Path = typer.Argument(Path("."), help="Project directory or metadata file")):
    """
    Show the project metadata init would put in the document.
    """
    package_info = load_package_info(path)

    table = Table(title="Document info")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("title", package_info.title)
    table.add_row("description", package_info.info_description())
    table.add_row("version", package_info.version)
    console.print(table)


def main():
    app()


if __name__ == "__main__":
    main()
