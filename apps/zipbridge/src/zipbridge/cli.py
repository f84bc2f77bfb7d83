"""CLI for zip-uploading a project into a GitHub repository."""

import functools
import logging

import click
import httpx
from ghgit import GitHubClient, get_token

from .config import Settings
from .credentials import TokenStore, validate_token_format, verify_token
from .errors import BridgeError, describe_error
from .extractor import load_archive
from .models import ChangeStatus
from .publisher import Publisher
from .reconcile import Reconciler
from .session import UploadSession, analyze, filter_repositories, push as push_session

logger = logging.getLogger(__name__)

STATUS_MARKERS = {
    ChangeStatus.NEW: "+",
    ChangeStatus.MODIFIED: "~",
    ChangeStatus.DELETED: "-",
    ChangeStatus.UNCHANGED: "=",
}


def setup_logging(verbose: int) -> None:
    """Setup logging."""
    level = logging.DEBUG if verbose >= 2 else logging.INFO if verbose == 1 else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def reports_errors(func):
    """Turn user-facing errors into a clean CLI failure."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BridgeError as e:
            raise click.ClickException(e.message) from e
        except httpx.HTTPError as e:
            raise click.ClickException(describe_error(e)) from e
        except ValueError as e:
            raise click.ClickException(str(e)) from e

    return wrapper


def split_repo(value: str) -> tuple[str, str]:
    owner, sep, repo = value.partition("/")
    if not sep or not owner or not repo:
        raise click.BadParameter(f"expected OWNER/REPO, got {value!r}")
    return owner, repo


def make_client(ctx: click.Context) -> GitHubClient:
    """Build a client from --token, the stored token, env or gh cli, in that order."""
    obj = ctx.obj
    settings: Settings = obj["settings"]
    token = obj["token"] or obj["store"].load() or get_token(use_gh_cli=obj["use_gh_cli"])
    token = validate_token_format(token)
    obj["resolved_token"] = token
    return GitHubClient(
        token=token,
        base_url=settings.api_url,
        timeout=settings.timeout,
        max_retries=obj["retries"],
    )


# ============ CLI Group ============

@click.group()
@click.option("--token", envvar="GITHUB_TOKEN", help="GitHub personal access token")
@click.option("--use-gh-cli", is_flag=True, help="Use gh cli credentials")
@click.option("--retries", "-r", type=int, default=None, help="Attempts on network errors")
@click.option("-v", "--verbose", count=True, help="Verbosity (-v, -vv)")
@click.pass_context
def cli(ctx: click.Context, token: str | None, use_gh_cli: bool, retries: int | None, verbose: int) -> None:
    """Upload a zipped project to a GitHub repository as one commit."""
    setup_logging(verbose)
    settings = Settings.from_env()
    ctx.ensure_object(dict)
    ctx.obj.update(
        settings=settings,
        store=TokenStore(settings.token_path),
        token=token,
        use_gh_cli=use_gh_cli,
        retries=settings.max_retries if retries is None else retries,
    )


# ============ Credential Commands ============

@cli.command()
@click.option("--token", "new_token", prompt="GitHub token", hide_input=True, help="Token to store")
@click.pass_context
@reports_errors
def login(ctx, new_token):
    """Validate and store a personal access token."""
    settings: Settings = ctx.obj["settings"]
    token = validate_token_format(new_token)
    client = GitHubClient(
        token=token, base_url=settings.api_url, timeout=settings.timeout, max_retries=ctx.obj["retries"]
    )
    user = verify_token(client)
    ctx.obj["store"].save(token)
    click.echo(f"Logged in as {user.login}")


@cli.command()
@click.pass_context
def logout(ctx):
    """Remove the stored token."""
    if ctx.obj["store"].clear():
        click.echo("Stored token removed.")
    else:
        click.echo("No stored token.")


@cli.command()
@click.pass_context
@reports_errors
def whoami(ctx):
    """Show the authenticated user."""
    user = verify_token(make_client(ctx))
    click.echo(user.login)


# ============ Repository Commands ============

@cli.command()
@click.option("--filter", "-f", "term", help="Only show repositories whose name or description contains TERM")
@click.pass_context
@reports_errors
def repos(ctx, term):
    """List your repositories, most recently updated first."""
    for repo in filter_repositories(make_client(ctx).list_repositories(), term):
        visibility = "private" if repo.private else "public"
        click.echo(f"{repo.full_name}  [{visibility}, {repo.default_branch}]")


@cli.command()
@click.argument("repository")
@click.pass_context
@reports_errors
def branches(ctx, repository):
    """List branches of OWNER/REPO."""
    owner, repo = split_repo(repository)
    for name in make_client(ctx).list_branches(owner, repo):
        click.echo(name)


@cli.command("create-repo")
@click.argument("name")
@click.option("-d", "--description", default="", help="Repository description")
@click.option("--private", is_flag=True, help="Create a private repository")
@click.pass_context
@reports_errors
def create_repo(ctx, name, description, private):
    """Create a repository (initialized with a README)."""
    repo = make_client(ctx).create_repository(name, description, private)
    click.echo(f"Created {repo.full_name} ({repo.default_branch})")


# ============ Upload Commands ============

def start_session(ctx: click.Context, archive_path: str, repository: str, branch: str | None) -> tuple[UploadSession, GitHubClient]:
    settings: Settings = ctx.obj["settings"]
    owner, repo = split_repo(repository)
    client = make_client(ctx)
    session = UploadSession(token=ctx.obj["resolved_token"], options=settings.reconcile_options())
    session.load(load_archive(archive_path, max_size=settings.max_archive_size))
    session.select_repository(client.get_repository(owner, repo), branch)
    click.echo(f"{session.archive.name}: {len(session.archive.files)} files")
    return session, client


def print_summary(session: UploadSession, show_unchanged: bool) -> None:
    summary = session.summary
    counts = summary.counts()
    click.echo(
        f"{session.owner}/{session.repository.name}@{session.target_branch}: "
        f"{counts['new']} new, {counts['modified']} modified, "
        f"{counts['deleted']} deleted, {counts['unchanged']} unchanged"
    )
    for status in ChangeStatus:
        if status is ChangeStatus.UNCHANGED and not show_unchanged:
            continue
        for path in summary.paths(status):
            click.echo(f"  {STATUS_MARKERS[status]} {path}")


@cli.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False))
@click.argument("repository")
@click.option("-b", "--branch", help="Target branch (default: repository default)")
@click.option("-a", "--all", "show_all", is_flag=True, help="Also list unchanged files")
@click.pass_context
@reports_errors
def diff(ctx, archive, repository, branch, show_all):
    """Compare ARCHIVE with a branch of OWNER/REPO."""
    session, client = start_session(ctx, archive, repository, branch)
    analyze(session, Reconciler(client, session.options))
    print_summary(session, show_all)


@cli.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False))
@click.argument("repository")
@click.option("-b", "--branch", help="Target branch (created if missing)")
@click.option("-m", "--message", help="Commit message")
@click.option("--clear", "clear_existing", is_flag=True, help="Replace the whole tree with the archive")
@click.option(
    "--include-unchanged/--skip-unchanged",
    default=None,
    help="Push unchanged files too (default from ZIPBRIDGE_SELECT_UNCHANGED)",
)
@click.option("--delete", "delete_paths", multiple=True, help="Delete a remote-only path")
@click.option("--delete-all", is_flag=True, help="Delete every remote-only path")
@click.option("--exclude", "exclude_paths", multiple=True, help="Do not push this path")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
@reports_errors
def push(
    ctx, archive, repository, branch, message, clear_existing, include_unchanged,
    delete_paths, delete_all, exclude_paths, yes,
):
    """Push ARCHIVE to a branch of OWNER/REPO as a single commit."""
    session, client = start_session(ctx, archive, repository, branch)
    if include_unchanged is not None:
        session.options = session.options.model_copy(update={"default_select_unchanged": include_unchanged})
    analyze(session, Reconciler(client, session.options), clear_existing=clear_existing)
    print_summary(session, show_unchanged=False)

    request = session.request
    if message:
        request.message = message
    remote_only = session.summary.paths(ChangeStatus.DELETED)
    if not clear_existing:
        for path in delete_paths:
            if path not in remote_only:
                raise click.BadParameter(f"{path} is not a remote-only file", param_hint="--delete")
        for path in remote_only if delete_all else delete_paths:
            session.toggle(path, True)
    elif delete_paths or delete_all:
        click.echo("--clear drops every file not in the archive, --delete is ignored.")
    for path in exclude_paths:
        session.toggle(path, False)

    if clear_existing:
        remote_paths = {c.path for s in ChangeStatus for c in session.summary.bucket(s) if c.remote}
        doomed = remote_paths - request.files_to_push
    else:
        doomed = request.files_to_delete
    click.echo(f"Pushing {len(request.files_to_push)} files, deleting {len(doomed)}: {request.message!r}")
    if not yes:
        click.confirm("Continue?", abort=True)

    with click.progressbar(length=100, label="Uploading") as bar:
        done = 0

        def on_step(step: str, fraction: float) -> None:
            nonlocal done
            percent = round(fraction * 100)
            bar.update(percent - done)
            done = percent

        result = push_session(session, Publisher(client), on_step=on_step)

    created = " (new branch)" if result.created_branch else ""
    click.echo(f"\nCommitted {result.commit_sha[:7]} to {result.branch}{created}")
    if result.branch_url:
        click.echo(f"View on GitHub: {result.branch_url}")


if __name__ == "__main__":
    cli()
