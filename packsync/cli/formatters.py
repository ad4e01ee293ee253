"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from packsync.core.sync_engine import SyncResult
from packsync.models.config import SyncConfig
from packsync.utils.formatting import format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigError": [
            "• Check the pack, index and metafiles for missing or invalid fields.",
            "• Check your configuration file and command-line options.",
        ],
        "DecodeError": [
            "• The pack location may not point to a pack.toml file.",
            "• A descriptor file may be corrupted or not valid TOML.",
        ],
        "FetchError": [
            "• Check your internet connection and the pack location.",
            "• The pack host may be temporarily unavailable; try again later.",
            "• Increase `--attempts` on unreliable connections.",
        ],
        "IntegrityError": [
            "• The pack may have been updated while it was being downloaded.",
            "• Ask the pack author to refresh the index (`packwiz refresh`).",
        ],
        "ExternalApiError": [
            "• The CurseForge API may be unavailable; try again later.",
            "• Check that your CurseForge API key (CF_API_KEY) is valid.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -v for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]Synchronization Failed[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the effective configuration, hiding the API key."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if key == "curseforge_api_key":
            value = "[hidden]"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip() or "[dim]No settings configured.[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: SyncConfig):
    """Displays a summary of the settings a run will use."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Pack:", f"[dim]{config.pack_uri}[/dim]")
    table.add_row("Install Folder:", str(config.pack_folder))
    table.add_row("Side:", config.side.value)
    table.add_row("Optional Items:", config.optional_mode.value)
    table.add_row("Max Workers:", str(config.max_workers))
    table.add_row(
        "Preserved Files:",
        "trusted" if config.trust_preserved_without_verify else "verified",
    )

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_summary_panel(result: SyncResult):
    """Displays the final summary of a synchronization run."""
    console = Console()
    stats = result.stats

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.files_downloaded}[/bold green]"
    )
    stats_table.add_row("○ Up to date:", f"[green]{stats.files_unchanged}[/green]")

    if stats.files_preserved > 0:
        stats_table.add_row("○ Preserved:", f"[yellow]{stats.files_preserved}[/yellow]")
    if stats.files_excluded > 0:
        stats_table.add_row("○ Not selected:", f"[yellow]{stats.files_excluded}[/yellow]")
    if stats.files_removed > 0:
        stats_table.add_row("✗ Removed:", f"[red]{stats.files_removed}[/red]")

    stats_table.add_row("", "")
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.bytes_downloaded)}[/cyan]"
    )
    stats_table.add_row(
        "Time Elapsed:", f"[blue]{format_duration(result.duration_s)}[/blue]"
    )

    console.print(
        Panel(
            stats_table,
            title="📦 [bold]Synchronization Complete![/bold]",
            border_style="green",
            expand=False,
        )
    )

    if stats.manual_downloads:
        manual_table = Table(title="Manual downloads required", title_style="yellow")
        manual_table.add_column("Item", style="cyan")
        manual_table.add_column("Download from")
        manual_table.add_column("Place at", style="dim")
        for item in stats.manual_downloads:
            manual_table.add_row(item.name, item.url, item.destination)
        console.print(manual_table)
