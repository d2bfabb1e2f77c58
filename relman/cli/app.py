"""Main Typer application — imports and registers all CLI commands.

Entry point: ``relman`` (configured via pyproject.toml console scripts).

Commands: upgrade, rollback, clean, list-tags, list-branches, status.
The short forms ``relman REVISION [-j N]`` and ``relman --list-tags V`` /
``--list-branches V`` are rewritten to the matching command by ``main``.
"""

from __future__ import annotations

import sys

import typer

from relman.cli.commands.clean import clean_cmd
from relman.cli.commands.list_refs import list_branches_cmd, list_tags_cmd
from relman.cli.commands.rollback import rollback_cmd
from relman.cli.commands.status import status_cmd
from relman.cli.commands.upgrade import upgrade_cmd
from relman.cli.common import configure_logging

app = typer.Typer(
    name="relman",
    help="relman: build, store, activate and roll back validator releases.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def _global_options(
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        envvar="RELMAN_LOG_LEVEL",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    configure_logging(log_level)


# Register subcommands
app.command(name="upgrade", help="Build a revision and make it the active release.")(upgrade_cmd)
app.command(name="rollback", help="Re-activate a previously stored version.")(rollback_cmd)
app.command(name="clean", help="Delete stored versions to free disk space.")(clean_cmd)
app.command(name="list-tags", help="List the newest tags of a source variant.")(list_tags_cmd)
app.command(name="list-branches", help="List recent branches of a source variant.")(list_branches_cmd)
app.command(name="status", help="Show stored versions and the active release.")(status_cmd)

COMMANDS = frozenset({"upgrade", "rollback", "clean", "list-tags", "list-branches", "status"})
LEGACY_FLAGS = {"--list-tags": "list-tags", "--list-branches": "list-branches"}
_VALUE_OPTIONS = frozenset({"--log-level"})


def rewrite_argv(argv: list[str]) -> list[str]:
    """Map the short invocation forms onto subcommands."""
    i = 0
    while i < len(argv):
        if argv[i] in _VALUE_OPTIONS:
            i += 2
        elif argv[i].startswith("--log-level="):
            i += 1
        else:
            break
    if i >= len(argv):
        return list(argv)

    head = argv[i]
    if head in LEGACY_FLAGS:
        return [*argv[:i], LEGACY_FLAGS[head], *argv[i + 1:]]
    if head.startswith("-") or head in COMMANDS:
        return list(argv)
    return [*argv[:i], "upgrade", *argv[i:]]


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = sys.argv[1:] if argv is None else argv
    app(args=rewrite_argv(args), prog_name="relman")


if __name__ == "__main__":
    main()
