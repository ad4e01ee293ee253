"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from packsync import __version__
from packsync.api.client import CurseForgeClient
from packsync.api.resolver import ExternalResolver
from packsync.core.sync_engine import SyncEngine, SyncResult
from packsync.models.config import OptionalMode, Side, SyncConfig
from packsync.storage.config_manager import ConfigManager, get_config_dir
from packsync.transport.fetcher import close_connection_pool

from .formatters import print_config, print_summary_panel, print_validation_table
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="WARNING",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("packsync")
log.setLevel("INFO")

app = typer.Typer(
    name="packsync",
    help="Synchronize a local folder with a packwiz modpack.",
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the settings from the config file."
    ),
):
    """packsync: packwiz modpack installer and updater."""
    if version:
        console.print(f"[bold]packsync[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    if verbose >= 1:
        logging.getLogger("packsync").setLevel("DEBUG")

    if show_config:
        config_manager = ConfigManager(CONFIG_FILE)
        print_config(CONFIG_FILE, config_manager._get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


async def run_sync(config: SyncConfig, show_progress: bool = True) -> SyncResult:
    """Runs one synchronization and releases every network resource afterwards."""
    client = CurseForgeClient(
        config.curseforge_api_key,
        max_workers=config.max_workers,
        timeout=config.request_timeout,
    )
    try:
        async with ProgressManager(console, enabled=show_progress) as progress:
            engine = SyncEngine(
                config,
                resolver=ExternalResolver(client),
                progress_manager=progress,
            )
            return await engine.run()
    finally:
        await close_connection_pool()
        await client.close()


@app.command(name="install")
def install_command(
    pack_uri: str = typer.Argument(..., help="pack.toml URL or path to install from."),
    side: Side | None = typer.Option(
        None, "-s", "--side", help="Side to install items for (default: client)."
    ),
    pack_folder: Path | None = typer.Option(  # noqa: B008
        None, "--pack-folder", help="Folder to install the pack to (default: cwd)."
    ),
    multimc_folder: Path | None = typer.Option(  # noqa: B008
        None,
        "--multimc-folder",
        help="The MultiMC instance folder (accepted for compatibility).",
    ),
    meta_file: str | None = typer.Option(
        None,
        "--meta-file",
        help="Manifest file, relative to the pack folder (default: packwiz.json).",
    ),
    timeout: int | None = typer.Option(
        None,
        "-t",
        "--timeout",
        help="Seconds to wait on optional item prompts (accepted for compatibility).",
    ),
    optional_mode: OptionalMode | None = typer.Option(
        None,
        "--optional-mode",
        help="Optional items: default (pack defaults), all, or none.",
    ),
    workers: int | None = typer.Option(
        None, "-w", "--workers", help="Number of entries processed at once (default 8)."
    ),
    attempts: int | None = typer.Option(
        None, "--attempts", help="Fetch attempts per file before giving up (default 3)."
    ),
    api_key: str | None = typer.Option(
        None, "--api-key", help="CurseForge API key (overrides CF_API_KEY)."
    ),
    trust_preserved: bool | None = typer.Option(
        None,
        "--trust-preserved/--verify-preserved",
        help="Record preserved files without hashing them (default) or verify them.",
    ),
    no_progress: bool = typer.Option(
        False, "--no-progress", help="Do not show the progress bar."
    ),
):
    """Install or update a pack into the pack folder."""
    cli_options = {
        "pack_uri": pack_uri,
        "side": side,
        "pack_folder": pack_folder,
        "multimc_folder": multimc_folder,
        "meta_file": meta_file,
        "prompt_timeout": timeout,
        "optional_mode": optional_mode,
        "max_workers": workers,
        "max_attempts": attempts,
        "curseforge_api_key": api_key,
        "trust_preserved_without_verify": trust_preserved,
    }

    config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    if log.isEnabledFor(logging.DEBUG):
        print_validation_table(config)

    result = asyncio.run(run_sync(config, show_progress=not no_progress))
    print_summary_panel(result)
