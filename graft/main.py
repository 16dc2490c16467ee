from __future__ import annotations

from collections.abc import Callable
import functools
import sys
import traceback

import click
from git import InvalidGitRepositoryError
from loguru import logger

from .adder import MirrorAdder
from .checker import MirrorChecker
from .constants import REQUIRED_GIT_VERSION
from .differ import MirrorDiffer
from .githelper import GitHelper
from .logger import ProgramState, setup_logger
from .mirror import MirrorOptions
from .remover import MirrorRemover
from .typed_path import AbsDir, GitDir
from .types import ExitCode


def check_for_errors[**P](fn: Callable[P, ExitCode | None]) -> Callable[P, None]:
    @functools.wraps(fn)
    def main(*args: P.args, **kwargs: P.kwargs) -> None:
        try:
            exitcode = fn(*args, **kwargs)
        except BaseException as e:
            logger.debug(f"Threw {type(e)}!")
            logger.trace(traceback.format_exc())
            logger.error(f"{type(e).__name__}: {e}")
            sys.exit(1)
        if exitcode is not None:
            sys.exit(exitcode)

    return main


@click.group(context_settings=dict(show_default=True))
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Display more output (repeat up to 2 times).",
    show_default=False,
)
@click.option(
    "-q",
    "--quiet",
    count=True,
    help="Display less output (repeat up to 3 times).",
    show_default=False,
)
@check_for_errors
def main(quiet: int, verbose: int) -> None:
    setup_logger(quiet, verbose)
    check_git_repo()
    GitHelper(GitDir.cwd()).require_version(REQUIRED_GIT_VERSION)


def check_git_repo() -> None:
    try:
        GitHelper.repo(AbsDir.cwd())
    except InvalidGitRepositoryError as e:
        raise InvalidGitRepositoryError(
            f"{AbsDir.cwd()} is not a git repository, please run `git init` first."
        ) from e


@main.command()
@click.argument("url")
@click.argument("local_path", required=False)
@click.option("--branch", "-b", default=None, help="Upstream branch to track.")
@click.option("--tag", "-t", default=None, help="Upstream tag to track.")
@click.option("--revision", "-r", default=None, help="Upstream revision to add.")
@click.option("--path", "-p", "remote_path", default=None, help="Path inside the upstream repository.")
@check_for_errors
@ProgramState.record_command
def add(
    url: str,
    local_path: str | None,
    branch: str | None,
    tag: str | None,
    revision: str | None,
    remote_path: str | None,
) -> None:
    """Add a mirror of URL at LOCAL_PATH.

    \b
    Examples:
    # Track the master branch.
    graft add https://myrepos.com/lib.git vendor/lib

    \b
    # Track a tag and only copy one directory.
    graft add https://myrepos.com/lib.git --tag v1.0 --path src/lib
    """
    options = MirrorOptions(
        branch=branch, tag=tag, revision=revision, path=local_path, remote_path=remote_path
    )
    MirrorAdder(GitDir.cwd(), url=url, options=options).add()


class GitPassThroughCommand(click.Command):
    """A command that hands everything after `--` to git untouched, as `git_args`."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        git_args: tuple[str, ...] = ()
        if "--" in args:
            separator = args.index("--")
            args, git_args = args[:separator], tuple(args[separator + 1 :])
        remaining = super().parse_args(ctx, args)
        ctx.params["git_args"] = git_args
        return remaining

    def collect_usage_pieces(self, ctx: click.Context) -> list[str]:
        return [*super().collect_usage_pieces(ctx), "[-- GIT_DIFF_ARGS...]"]


@main.command(cls=GitPassThroughCommand)
@click.argument("local_path", required=False)
@check_for_errors
@ProgramState.record_command
def diff(local_path: str | None, git_args: tuple[str, ...]) -> None:
    """Show local changes made to mirrors.

    \b
    Examples:
    # Summarize the changes to one mirror.
    graft diff vendor/lib -- --stat

    \b
    # Summarize the changes to every mirror.
    graft diff -- --stat
    """
    click.echo(MirrorDiffer(GitDir.cwd(), path=local_path, git_args=git_args).diff(), nl=False)


@main.command()
@click.argument("local_path", required=False)
@check_for_errors
@ProgramState.record_command
def status(local_path: str | None) -> ExitCode:
    """Check whether mirrors are up to date with their upstream branch or tag.

    \b
    Example:
    # Check every mirror.
    graft status
    """
    return MirrorChecker(GitDir.cwd(), path=local_path).check()


@main.command()
@click.argument("local_path")
@click.option("--keep-remote", is_flag=True, help="Keep the git remote of the mirror.")
@check_for_errors
@ProgramState.record_command
def remove(local_path: str, keep_remote: bool) -> None:
    """Remove the mirror at LOCAL_PATH.

    \b
    Example:
    graft remove vendor/lib
    """
    MirrorRemover(GitDir.cwd(), path=local_path, keep_remote=keep_remote).remove()
