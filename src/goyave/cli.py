"""Command line interface for goyave."""

import logging
from pathlib import Path
from typing import List, NoReturn, Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .core.commands import (
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_WORKERS,
    clone_missing,
    collect_states,
    find_repositories,
    register_repositories,
)
from .core.config import CONFIG_ENV_VAR, Config, ConfigState, get_home_dir
from .core.errors import ConfigurationError, RegistryError
from .core.logging import setup_logging
from .core.models import Visibility
from .core.registry import AddOutcome
from .core.repository import is_git_repository, render_status

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)

workers_option = click.option(
    "--workers",
    "-w",
    type=click.IntRange(min=1),
    default=DEFAULT_WORKERS,
    show_default=True,
    help="Number of repositories processed in parallel",
)


def fail(ctx: click.Context, message: str) -> NoReturn:
    """Report a user error and exit with status 1, leaving the file untouched."""
    err_console.print(f"[red]Error: {escape(message)}")
    ctx.exit(1)


def load_config(ctx: click.Context) -> Config:
    """Load the configuration file of the invocation on first use.

    A configuration error is fatal: it is reported and the command aborts
    without writing anything.
    """
    config: Config = ctx.find_root().obj
    if config.state is ConfigState.UNINITIALIZED:
        try:
            config.load()
        except ConfigurationError as e:
            err_console.print(f"[red]Error: {escape(str(e))}")
            raise click.Abort()
        for problem in config.validate():
            logger.warning(problem)
    return config


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar=CONFIG_ENV_VAR,
    help="Configuration file to use (defaults to ~/.goyave)",
)
@click.option("--debug", is_flag=True, help="Show debug logs")
@click.option(
    "--log-file", type=click.Path(dir_okay=False), help="Also write every log record to this file"
)
@click.version_option(__version__, prog_name="goyave")
@click.pass_context
def cli(
    ctx: click.Context, config_path: Optional[Path], debug: bool, log_file: Optional[str]
) -> None:
    """Goyave is a tool to take a look at your local git repositories.

    Repositories are recorded in a configuration file shared between your
    machines. Each machine has its own group of VISIBLE repositories: the
    ones reported by 'state' and reachable through 'path'.

    Main commands:

      add       Add the current directory as a visible repository
      crawl     Find and register every repository of your home directory
      state     Show the state of visible repositories
      path      Print the path of a repository
      switch    Toggle the visibility of the current directory

    Run 'goyave COMMAND --help' for more information on a specific command.
    """
    setup_logging(debug=debug, log_file=log_file)
    try:
        ctx.obj = Config(config_path)
    except ConfigurationError as e:
        err_console.print(f"[red]Error: {escape(str(e))}")
        raise click.Abort()


@cli.result_callback()
@click.pass_obj
def persist(config: Config, result: object, **params: object) -> None:
    """Save the configuration file once a command succeeded."""
    if config.state is ConfigState.UNINITIALIZED:
        return
    try:
        config.save()
    except ConfigurationError as e:
        err_console.print(f"[red]Error: {escape(str(e))}")
        raise click.Abort()


@cli.command()
@click.pass_context
def add(ctx: click.Context) -> None:
    """Add the current directory as a VISIBLE repository.

    Example:

      cd ~/src/myproject && goyave add
    """
    config = load_config(ctx)
    current_dir = str(Path.cwd())
    if not is_git_repository(current_dir):
        fail(ctx, f"{current_dir} is not a git repository!")

    registry = config.registry()
    outcome = registry.add_repository(current_dir, Visibility.VISIBLE)
    name = Path(current_dir).name
    if outcome is AddOutcome.CREATED:
        console.print(f"[green]Added {escape(name)} as a visible repository")
    elif outcome is AddOutcome.UPDATED:
        console.print(f"[green]Updated the path of {escape(name)} to {escape(current_dir)}")
    else:
        console.print(f"[yellow]{escape(name)} is already registered")


@cli.command()
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory to crawl (defaults to your home directory)",
)
@click.option(
    "--exclude",
    "-e",
    multiple=True,
    help="Directory name to skip, in addition to the defaults (repeatable)",
)
@workers_option
@click.pass_context
def crawl(ctx: click.Context, root: Optional[Path], exclude: Tuple[str, ...], workers: int) -> None:
    """Crawl the hard drive in order to find git repositories.

    New repositories are placed according to the default target of the
    configuration file (local.defaultTarget).

    Examples:

      # Crawl your home directory
      goyave crawl

      # Crawl a single directory, skipping 'vendor' directories
      goyave crawl --root ~/src -e vendor
    """
    config = load_config(ctx)
    try:
        root = root or get_home_dir()
        target = config.groups().get_default_visibility()
    except ConfigurationError as e:
        err_console.print(f"[red]Error: {escape(str(e))}")
        raise click.Abort()

    console.print(f"[bold]Crawling {escape(str(root))}...")
    paths = find_repositories(root, DEFAULT_EXCLUDE_PATTERNS + list(exclude))
    outcomes = register_repositories(config.registry(), paths, target, workers)

    created = sum(1 for outcome in outcomes.values() if outcome is AddOutcome.CREATED)
    updated = sum(1 for outcome in outcomes.values() if outcome is AddOutcome.UPDATED)
    console.print(
        f"Found {len(paths)} repositories: {created} new, {updated} updated "
        f"(default target: {target.value})"
    )


@cli.command()
@click.argument("names", nargs=-1)
@workers_option
@click.pass_context
def state(ctx: click.Context, names: Tuple[str, ...], workers: int) -> None:
    """Get the state of each local visible git repository.

    NAMES restricts the check to those repositories; otherwise every visible
    repository of this host is checked.

    Examples:

      goyave state
      goyave state myRepositoryName1 myRepositoryName2
    """
    config = load_config(ctx)
    paths: List[str] = []
    if names:
        registry = config.registry()
        for name in names:
            repo_path = registry.get_path(name)
            if repo_path is None:
                logger.warning("%s cannot be found in your visible repositories", name)
            else:
                paths.append(repo_path)
    else:
        groups = config.groups()
        paths = [repo_path for _, repo_path in groups.resolve(groups.host)]

    if not paths:
        console.print("[yellow]No visible repositories to check.")
        return

    reports = collect_states(paths, workers)
    for repo_path in paths:
        report = reports.get(repo_path)
        if report is not None:
            console.print(render_status(report))


@cli.command()
@click.argument("name")
@click.pass_context
def path(ctx: click.Context, name: str) -> None:
    """Get the path of a given repository, if this one exists.

    Useful to change directory:

      cd $(goyave path myrepository)
    """
    config = load_config(ctx)
    repo_path = config.registry().get_path(name)
    if repo_path is None:
        fail(ctx, f"repository {name} not found")
    click.echo(repo_path)


@cli.command()
@click.pass_context
def switch(ctx: click.Context) -> None:
    """Toggle the visibility of the current directory on this host.

    A visible repository becomes hidden and a hidden one becomes visible.
    The repository must have been registered first, with 'add' or 'crawl'.
    """
    config = load_config(ctx)
    current_dir = str(Path.cwd())
    try:
        visibility = config.groups().switch(current_dir)
    except RegistryError as e:
        fail(ctx, str(e))
    console.print(f"{escape(Path(current_dir).name)} is now [bold]{visibility.value}")


@cli.command(name="list")
@click.pass_context
def list_repositories(ctx: click.Context) -> None:
    """List the registered repositories."""
    config = load_config(ctx)
    registry = config.registry()
    groups = config.groups()
    records = registry.list_repositories()
    if not records:
        console.print("[yellow]No repositories registered.")
        return

    table = Table(title=f"Repositories ({groups.host})")
    table.add_column("Name", style="cyan")
    table.add_column("Path", style="green")
    table.add_column("Visibility", style="yellow")
    table.add_column("URL", style="blue")
    for record in records:
        visible = groups.is_visible(record.name, groups.host)
        table.add_row(
            record.name,
            record.path_for(groups.host) or "-",
            Visibility.VISIBLE.value if visible else Visibility.HIDDEN.value,
            record.url or "-",
        )
    console.print(table)


@cli.command()
@click.argument("name")
@click.option("--group", "-g", help="Group to remove the repository from (defaults to this host)")
@click.pass_context
def remove(ctx: click.Context, name: str, group: Optional[str]) -> None:
    """Remove a repository from a group. The repository stays registered."""
    config = load_config(ctx)
    group = group or config.data.current_group
    try:
        config.registry().remove(name, group)
    except RegistryError as e:
        fail(ctx, str(e))
    console.print(f"Removed {escape(name)} from group {escape(group)}")


@cli.command()
@click.option("--group", "-g", help="Group to restore (defaults to this host)")
@workers_option
@click.pass_context
def load(ctx: click.Context, group: Optional[str], workers: int) -> None:
    """Clone the visible repositories of a group that are missing locally.

    Restores your work space on a machine from the configuration file.
    """
    config = load_config(ctx)
    groups = config.groups()
    host = group or groups.host
    known = groups.group_names()
    if host not in known:
        fail(ctx, f"group {host} has not been found, choose one of: {', '.join(known)}")

    registry = config.registry()
    repositories = []
    for name, repo_path in groups.resolve(host):
        record = registry.get(name)
        repositories.append((name, repo_path, record.url if record else ""))

    results = clone_missing(repositories, workers)
    cloned = sum(1 for was_cloned in results.values() if was_cloned)
    console.print(f"Cloned {cloned} of {len(repositories)} repositories")


def main() -> None:
    """Entry point for the goyave CLI."""
    cli()


if __name__ == "__main__":
    main()
