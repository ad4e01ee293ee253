"""
Entry point for ``packsync`` and ``python -m packsync``.

Application errors are shown as a panel with suggestions instead of a traceback.
"""

import logging
import sys

import typer
from rich.console import Console

from packsync.cli.app import app
from packsync.cli.formatters import format_error_with_suggestions
from packsync.exceptions import PacksyncError

log = logging.getLogger("packsync")


def _fail(console: Console, error: Exception, context: dict | None = None) -> None:
    console.print(format_error_with_suggestions(error, context))
    sys.exit(1)


def main() -> None:
    console = Console(stderr=True)
    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except KeyboardInterrupt:
        # The manifest is only replaced at the end of a run, so nothing is left half-written.
        console.print("[yellow]Interrupted; the previous manifest was kept.[/yellow]")
        sys.exit(0)
    except PacksyncError as e:
        _fail(console, e)
    except Exception as e:
        log.debug("Unexpected error", exc_info=True)
        _fail(console, e, {"type": "Unexpected"})


if __name__ == "__main__":
    main()
