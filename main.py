# main.py is the command-line entry point: it runs one EditTool command and prints the result.

import asyncio
import sys
from typing import Optional

import click
from rich.console import Console

from config import get_constant, setup_logging
from tools.base import ToolResult
from tools.edit import EditTool

err_console = Console(stderr=True)


def _read_text(value: Optional[str], source) -> Optional[str]:
    """Prefer an explicit --old/--new value, else the contents of the given file ('-' is stdin)."""
    if value is not None:
        return value
    if source is not None:
        return source.read()
    return None


def _run(ctx: click.Context, **tool_input) -> None:
    tool = EditTool(project_root=ctx.obj["root"])
    result: ToolResult = asyncio.run(tool(**tool_input))
    # Tool output goes out verbatim; rich would expand the cat -n tabs
    if result.failed:
        err_console.print(f"[bold red]{tool_input['command']} failed[/bold red]")
        click.echo(result.output or result.error, err=True)
        ctx.exit(1)
    click.echo(result.output)


@click.group()
@click.option(
    "--root",
    type=click.Path(file_okay=False, exists=True),
    default=None,
    help="Project root (defaults to FUZZEDIT_REPO_DIR or the current directory).",
)
@click.option("--log-level", default=None, help="Console log level (DEBUG, INFO, WARNING...).")
@click.pass_context
def cli(ctx: click.Context, root: Optional[str], log_level: Optional[str]):
    """fuzzedit: view and patch files the way an LLM coding agent does."""
    setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["root"] = root or get_constant("REPO_DIR")


@cli.command()
@click.argument("path")
@click.option("--range", "view_range", type=(int, int), default=None, help="START END (END -1 for EOF).")
@click.pass_context
def view(ctx: click.Context, path: str, view_range):
    """Show a file with line numbers, or list a directory two levels deep."""
    _run(ctx, command="view", path=path, view_range=list(view_range) if view_range else None)


@cli.command()
@click.argument("path")
@click.option("--text", default=None, help="File content.")
@click.option("--from-file", "source", type=click.File("r"), default=None, help="Read content from a file ('-' for stdin).")
@click.pass_context
def create(ctx: click.Context, path: str, text: Optional[str], source):
    """Create or overwrite a file."""
    _run(ctx, command="create", path=path, file_text=_read_text(text, source))


@cli.command("str_replace")
@click.argument("path")
@click.option("--old", default=None, help="Text to replace.")
@click.option("--old-file", type=click.File("r"), default=None, help="Read old text from a file.")
@click.option("--new", default=None, help="Replacement text.")
@click.option("--new-file", type=click.File("r"), default=None, help="Read new text from a file.")
@click.option("--start-line", type=int, default=None, help="Approximate line where the old text starts.")
@click.pass_context
def str_replace(ctx: click.Context, path: str, old, old_file, new, new_file, start_line):
    """Replace text, tolerating whitespace and small differences."""
    _run(
        ctx,
        command="str_replace",
        path=path,
        old_str=_read_text(old, old_file),
        new_str=_read_text(new, new_file) or "",
        start_line=start_line,
    )


@cli.command()
@click.argument("path")
@click.argument("insert_line", type=int)
@click.option("--text", default=None, help="Text to insert.")
@click.option("--from-file", "source", type=click.File("r"), default=None, help="Read text from a file ('-' for stdin).")
@click.pass_context
def insert(ctx: click.Context, path: str, insert_line: int, text: Optional[str], source):
    """Insert text after INSERT_LINE (0 inserts at the top)."""
    _run(ctx, command="insert", path=path, insert_line=insert_line, new_str=_read_text(text, source))


def main():
    try:
        cli(obj={})
    except KeyboardInterrupt:
        err_console.print("\nInterrupted by user. Exiting.")
        sys.exit(130)


if __name__ == "__main__":
    main()
