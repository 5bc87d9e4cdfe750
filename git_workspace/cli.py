"""git-workspace command line interface.

Examples:
    git-workspace -w ~/code update
    git-workspace -w ~/code run --threads 4 git status --short
    git-workspace -w ~/code add github my-org --skip-forks
"""

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
from rich.console import Console

from git_workspace import __version__
from git_workspace.commands import Workspace
from git_workspace.exceptions import GitWorkspaceError, error_chain
from git_workspace.executor import DEFAULT_THREADS, BatchResult
from git_workspace.logging import configure_logging
from git_workspace.providers import GiteaProvider, GithubProvider, GitlabProvider, ProviderSource
from git_workspace.workspace import WORKSPACE_ENV_VAR, resolve_workspace

LOG_LEVEL_ENV_VAR = "GIT_WORKSPACE_LOG_LEVEL"


class WorkspaceGroup(click.Group):
    """Click group that renders library errors as a chained message and exits 1."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except GitWorkspaceError as e:
            chain = error_chain(e)
            click.echo(f"Error: {chain[0]}", err=True)
            for cause in chain[1:]:
                click.echo(f"  because: {cause}", err=True)
            ctx.exit(1)


def _log_level(verbose: int) -> int:
    override = os.environ.get(LOG_LEVEL_ENV_VAR)
    if override:
        level = logging.getLevelName(override.upper())
        if isinstance(level, int):
            return level
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


def _finish_batch(ctx: click.Context, result: BatchResult[Any, Any]) -> None:
    """Apply the exit status policy: failures only change the status with --strict."""
    if ctx.obj["strict"] and not result.ok:
        ctx.exit(1)


threads_option = click.option(
    "-t",
    "--threads",
    type=click.IntRange(min=1),
    default=DEFAULT_THREADS,
    show_default=True,
    envvar="GIT_WORKSPACE_THREADS",
    help="Number of repositories to process in parallel.",
)


@click.group(cls=WorkspaceGroup)
@click.option(
    "-w",
    "--workspace",
    "workspace_path",
    envvar=WORKSPACE_ENV_VAR,
    required=True,
    type=click.Path(file_okay=False, path_type=Path),
    help=f"Workspace root (or ${WORKSPACE_ENV_VAR}).",
)
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug).")
@click.option(
    "--strict",
    is_flag=True,
    envvar="GIT_WORKSPACE_STRICT",
    help="Exit with status 1 when any repository in a batch fails.",
)
@click.version_option(__version__, prog_name="git-workspace")
@click.pass_context
def main(ctx: click.Context, workspace_path: Path, verbose: int, strict: bool) -> None:
    """Manage a workspace of git repositories from GitHub, GitLab and Gitea."""
    configure_logging(level=_log_level(verbose))

    path, created = resolve_workspace(workspace_path)
    if created:
        click.echo(f"Created {workspace_path} as it did not exist")

    ctx.obj = {
        "workspace": Workspace(path, console=Console(), err_console=Console(stderr=True)),
        "strict": strict,
    }


@main.command()
@threads_option
@click.pass_context
def update(ctx: click.Context, threads: int) -> None:
    """Lock, then clone any repositories that are missing."""
    result, _ = ctx.obj["workspace"].update(threads=threads)
    _finish_batch(ctx, result)


@main.command()
@threads_option
@click.pass_context
def fetch(ctx: click.Context, threads: int) -> None:
    """Fetch new commits for all repositories in the workspace."""
    _finish_batch(ctx, ctx.obj["workspace"].fetch(threads=threads))


@main.command()
@click.pass_context
def lock(ctx: click.Context) -> None:
    """Fetch all repositories from configured providers and write the lockfile."""
    ctx.obj["workspace"].lock()


@main.command("switch-and-pull")
@threads_option
@click.pass_context
def switch_and_pull(ctx: click.Context, threads: int) -> None:
    """Switch to the primary branch and pull in every repository."""
    _finish_batch(ctx, ctx.obj["workspace"].switch_and_pull(threads=threads))


@main.command("list")
@click.option("--full", is_flag=True, help="Print absolute paths instead of names.")
@click.pass_context
def list_(ctx: click.Context, full: bool) -> None:
    """List all repositories in the workspace."""
    for line in ctx.obj["workspace"].list(full=full):
        click.echo(line)


@main.command()
@click.option("--force", is_flag=True, help="Disable the confirmation prompt.")
@click.pass_context
def archive(ctx: click.Context, force: bool) -> None:
    """Archive repositories that are no longer declared by any provider."""

    def confirm(prompt: str) -> bool:
        return click.confirm(prompt, default=False)

    ctx.obj["workspace"].archive(force=force, confirm=confirm)


@main.command(context_settings={"ignore_unknown_options": True})
@threads_option
@click.argument("command")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run(ctx: click.Context, threads: int, command: str, args: tuple[str, ...]) -> None:
    """Run COMMAND with ARGS inside every repository."""
    _finish_batch(ctx, ctx.obj["workspace"].run(command, args, threads=threads))


# ============================================================================
# add
# ============================================================================


@main.group()
@click.option(
    "--file",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("workspace.toml"),
    show_default=True,
    help="Config file to add the provider to (relative to the workspace).",
)
@click.pass_context
def add(ctx: click.Context, config_file: Path) -> None:
    """Add a provider to the configuration."""
    ctx.obj["config_file"] = config_file


def _add(ctx: click.Context, source: ProviderSource) -> None:
    ctx.obj["workspace"].add_provider(source, ctx.obj["config_file"])


def _provider_options(env_var: str, path: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Options shared by every provider subcommand."""

    def decorate(fn: Callable[..., Any]) -> Callable[..., Any]:
        for option in reversed(
            [
                click.argument("name"),
                click.option("--path", default=path, show_default=True, help="Directory inside the workspace."),
                click.option("--env-name", "env_var", default=env_var, show_default=True, help="Environment variable holding the API token."),
                click.option("--auth-http", is_flag=True, help="Clone over HTTPS instead of SSH."),
                click.option("--include", multiple=True, help="Only keep repositories whose path matches this regex."),
                click.option("--exclude", multiple=True, help="Drop repositories whose path matches this regex."),
            ]
        ):
            fn = option(fn)
        return fn

    return decorate


@add.command()
@_provider_options(GithubProvider.env_var, GithubProvider.path)
@click.option("--skip-forks", is_flag=True, help="Do not clone forked repositories.")
@click.option("--url", default=GithubProvider.url, show_default=True, help="GraphQL endpoint.")
@click.pass_context
def github(ctx: click.Context, name: str, path: str, env_var: str, auth_http: bool,
           include: tuple[str, ...], exclude: tuple[str, ...], skip_forks: bool, url: str) -> None:
    """Add a GitHub user or organisation."""
    _add(ctx, GithubProvider(
        name=name, path=path, env_var=env_var, skip_forks=skip_forks,
        auth_http=auth_http, url=url, include=include, exclude=exclude,
    ))


@add.command()
@_provider_options(GitlabProvider.env_var, GitlabProvider.path)
@click.option("--url", default=GitlabProvider.url, show_default=True, help="GitLab instance URL.")
@click.pass_context
def gitlab(ctx: click.Context, name: str, path: str, env_var: str, auth_http: bool,
           include: tuple[str, ...], exclude: tuple[str, ...], url: str) -> None:
    """Add a GitLab group or user."""
    _add(ctx, GitlabProvider(
        name=name, url=url, path=path, env_var=env_var,
        auth_http=auth_http, include=include, exclude=exclude,
    ))


@add.command()
@_provider_options(GiteaProvider.env_var, GiteaProvider.path)
@click.option("--url", required=True, help="Gitea instance URL.")
@click.option("--skip-forks", is_flag=True, help="Do not clone forked repositories.")
@click.pass_context
def gitea(ctx: click.Context, name: str, path: str, env_var: str, auth_http: bool,
          include: tuple[str, ...], exclude: tuple[str, ...], url: str, skip_forks: bool) -> None:
    """Add a Gitea user or organisation."""
    _add(ctx, GiteaProvider(
        name=name, url=url, path=path, env_var=env_var, skip_forks=skip_forks,
        auth_http=auth_http, include=include, exclude=exclude,
    ))


if __name__ == "__main__":
    main()
