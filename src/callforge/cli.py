"""Command-line interface for callforge utilities.

This module provides CLI commands to inspect how a contract class is
parsed: the operations it yields, their request templates and the role
of each parameter.

Example:
    >>> # From terminal:
    >>> # callforge --version
    >>> # callforge inspect myapp.clients:GitHub
    >>> # callforge inspect myapp.clients:GitHub --format json
"""

import importlib
import json
from typing import Annotated, Any

import typer

from callforge import __version__
from callforge.contract.parser import DefaultContract
from callforge.errors import ContractError
from callforge.metadata import MethodMetadata

app = typer.Typer(help="Callforge CLI.")

# Global verbose flag
_verbose: bool = False

OUTPUT_FORMATS = ("table", "json")


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show callforge version and exit.",
    callback=_version_callback,
    is_eager=True,
)


@app.callback()
def cli(
    version: bool = VERSION_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output."),
) -> None:
    """Callforge CLI entrypoint."""
    global _verbose
    _verbose = verbose


def _load_contract(path: str) -> type:
    """Import ``module:Class`` (or ``module.Class``) and return the class."""
    module_name, sep, attr = path.partition(":")
    if not sep:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise typer.BadParameter(f"Expected module:Class, got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise typer.BadParameter(f"Cannot import {module_name!r}: {exc}") from exc
    target: Any = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise typer.BadParameter(f"{module_name!r} has no attribute {attr!r}") from exc
    if not isinstance(target, type):
        raise typer.BadParameter(f"{path!r} is not a class")
    return target


def _roles(metadata: MethodMetadata) -> dict[str, str]:
    roles: dict[str, str] = {}
    for index, role in sorted(metadata.parameters.items()):
        label = role.kind
        names = getattr(role, "names", None)
        if names:
            label = f"{label}({','.join(names)})"
        roles[str(index)] = label
    return roles


def _operation_summary(metadata: MethodMetadata) -> dict[str, Any]:
    template = metadata.template
    query_line = template.query_line()
    uri = f"{template.uri}?{query_line}" if query_line else template.uri
    return {
        "config_key": metadata.config_key,
        "method": template.method.value if template.method else None,
        "uri": uri,
        "headers": {name: list(values) for name, values in template.headers.items()},
        "parameters": _roles(metadata),
        "form_params": list(metadata.form_params),
        "ignored": metadata.ignored,
        "warnings": list(metadata.warnings),
    }


@app.command("inspect")
def inspect(
    contract: Annotated[
        str,
        typer.Argument(help="Contract class to parse, as module:Class."),
    ],
    output_format: Annotated[
        str,
        typer.Option(
            "--format",
            "-o",
            help="Output format: table (human readable) or json (for external tools).",
        ),
    ] = "table",
) -> None:
    """Parse a contract class and print its operations.

    Exits with code 1 when the contract is invalid, printing the parser's
    message to stderr.
    """
    fmt = output_format.strip().lower() if output_format else "table"
    if fmt not in OUTPUT_FORMATS:
        typer.echo("Error: --format must be 'table' or 'json'", err=True)
        raise typer.Exit(1)

    api = _load_contract(contract)
    try:
        operations = DefaultContract().parse(api)
    except ContractError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(1) from exc

    summaries = [_operation_summary(metadata) for metadata in operations]
    if fmt == "json":
        typer.echo(json.dumps(summaries, indent=2))
        return

    for summary in summaries:
        roles = " ".join(f"{i}={role}" for i, role in summary["parameters"].items())
        line = f"{summary['config_key']}\t{summary['method']} {summary['uri']}"
        if roles:
            line = f"{line}\t{roles}"
        if summary["ignored"]:
            line = f"{line}\t(ignored)"
        typer.echo(line)
        if _verbose:
            for name, values in summary["headers"].items():
                typer.echo(f"  {name}: {', '.join(values)}")
            for warning in summary["warnings"]:
                typer.echo(f"  warning: {warning}")


def main() -> None:
    """Run the callforge CLI."""
    app()


if __name__ == "__main__":
    main()
