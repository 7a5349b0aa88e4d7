"""Diagnostic commands for checking azstore configuration outside the host."""

import logging
import sys
from pathlib import Path

import typer

from azstore.azure.credentials import StorageCredentialResolver
from azstore.azure.identity import VaultCredentialResolver
from azstore.config import AzureConfig, load_config, load_config_file
from azstore.constants import APP_NAME, VAULT_URL_TEMPLATE, VERSION
from azstore.errors import AzstoreError
from azstore.plugins import PLUGINS

app = typer.Typer(
    help="Check Azure storage and Key Vault settings used by the azstore plugins",
    no_args_is_help=True,
)

_CONFIG_HELP = "Path to a JSON configuration file. Reads stdin when '-' is given."
_VERBOSE_HELP = "Log debug output to stderr."


def _load(config_path: Path | None) -> AzureConfig:
    if config_path is None:
        return AzureConfig()
    if str(config_path) == "-":
        return load_config(sys.stdin.read())
    return load_config_file(config_path)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command()
def version() -> None:
    """Print the version and the registered plugin keys."""
    typer.echo(f"{APP_NAME} v{VERSION}")
    for key in sorted(PLUGINS):
        typer.echo(f"  {key}")


@app.command("check-storage")
def check_storage(
    config_path: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", allow_dash=True, help=_CONFIG_HELP
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help=_VERBOSE_HELP),  # noqa: B008
) -> None:
    """Resolve storage account credentials the way the blob plugin does."""
    _setup_logging(verbose)
    try:
        config = _load(config_path)
        credential = StorageCredentialResolver(config).resolve()
    except AzstoreError as exc:
        _fail(exc)
        return
    typer.echo(f"Storage account: {credential.account_name}")
    typer.echo(f"Container: {config.storage_container}")
    typer.echo(f"Compression: {'on' if config.storage_compress_data else 'off'}")


@app.command("check-vault")
def check_vault(
    config_path: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", allow_dash=True, help=_CONFIG_HELP
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help=_VERBOSE_HELP),  # noqa: B008
) -> None:
    """Validate Key Vault login settings and build the credential."""
    _setup_logging(verbose)
    try:
        config = _load(config_path)
        credential = VaultCredentialResolver(config).resolve()
    except AzstoreError as exc:
        _fail(exc)
        return
    vault_url = config.vault_url or VAULT_URL_TEMPLATE.format(vault=config.vault)
    typer.echo(f"Vault: {vault_url}")
    typer.echo(f"Login method: {type(credential).__name__}")


if __name__ == "__main__":
    app()
