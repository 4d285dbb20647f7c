"""Command line tool for state encryption operations."""

import sys
from pathlib import Path
from typing import Annotated

import nacl.utils
import typer
from rich.console import Console
from rich.markup import escape

from statecrypt.encryption import binding, service, settings
from statecrypt.encryption.builtin import default_registry
from statecrypt.encryption.constants import KEY_SIZE
from statecrypt.encryption.diagnostics import Severity
from statecrypt.encryption.exceptions import ConfigurationError, StateEncryptionError

err_console = Console(stderr=True)
console = Console(stderr=False)
app = typer.Typer(help=__doc__)


@app.command()
def create_key():
    """Generate a key for the "client-side/AES256-CFB/SHA256" method.

    The key is written to stdout as 64 lowercase hex characters, suitable for the "key" parameter of the method or of
    the "static" key provider.
    """
    print(nacl.utils.random(KEY_SIZE).hex())


@app.command()
def list_definitions():
    """List the registered key providers and encryption methods."""
    registry = default_registry()
    console.print("[bold]Key providers[/bold]")
    for name in registry.get_key_providers():
        console.print(f"  {name}")
    console.print("[bold]Methods[/bold]")
    for name in registry.get_methods():
        console.print(f"  {name}")


@app.command()
def validate_config(
    file: Annotated[
        Path | None,
        typer.Option(help="JSON configuration file to validate. Defaults to the environment's configuration."),
    ] = None,
):
    """Check an encryption configuration and print any diagnostics."""
    try:
        if file is not None:
            config = settings.parse_settings(file.read_bytes(), str(file))
        else:
            config = settings.load_from_env()
    except OSError as err:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(err))}")
        raise typer.Exit(1) from err
    except ConfigurationError as err:
        _print_diagnostics(err)
        raise typer.Exit(1) from err
    if config is None:
        err_console.print("[yellow]No encryption configuration found; state will not be encrypted.[/yellow]")
        return

    bound, diags = binding.resolve(default_registry(), config)
    for diag in diags:
        color = "red" if diag.severity == Severity.ERROR else "yellow"
        err_console.print(f"[{color}]{escape(str(diag))}[/{color}]")
    if bound is None:
        raise typer.Exit(1)
    console.print(f"[green]OK[/green]: using '{bound.method_name}'")


def _print_diagnostics(err: ConfigurationError):
    err_console.print(f"[bold red]Error:[/bold red] {escape(str(err))}")
    for diag in err.diagnostics:
        err_console.print(f"  [red]{escape(str(diag))}[/red]")


@app.command()
def encrypt():
    """Encrypts state read from stdin using the environment's encryption configuration."""
    try:
        service.setup()
        output = service.get_state_encryption().encrypt(sys.stdin.buffer.read())
    except StateEncryptionError as err:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(err))}")
        raise typer.Exit(1) from err
    sys.stdout.buffer.write(output)


@app.command()
def decrypt():
    """Decrypts state read from stdin using the environment's encryption configuration."""
    try:
        service.setup()
        output = service.get_state_encryption().decrypt(sys.stdin.buffer.read())
    except StateEncryptionError as err:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(err))}")
        raise typer.Exit(1) from err
    sys.stdout.buffer.write(output)


if __name__ == "__main__":
    app()
