"""CLI entry point for releaser."""

from __future__ import annotations

from pathlib import Path

import click

from releaser.config import load_config
from releaser.errors import ReleaserError
from releaser.github import GitHubClient
from releaser.models import RELEASE_TYPES, RUN_MODES
from releaser.pipeline import run_release


def _confirm() -> bool:
    return click.confirm(
        "Are you sure you want to release these packages?", default=False
    )


@click.group()
@click.version_option(package_name="releaser")
def cli() -> None:
    """Release a package together with every dependency that needs it."""


@cli.command()
@click.argument("package")
@click.option("--owner", help="GitHub user or organization owning the repositories.")
@click.option(
    "--token",
    envvar=["GH_TOKEN", "GITHUB_TOKEN"],
    help="GitHub API token. (env: GH_TOKEN, GITHUB_TOKEN)",
)
@click.option(
    "-i",
    "--include",
    multiple=True,
    help="Only follow dependencies whose name contains this (repeatable).",
)
@click.option(
    "-e",
    "--exclude",
    multiple=True,
    help="Skip dependencies whose name contains this (repeatable).",
)
@click.option(
    "-t",
    "--type",
    "release_type",
    type=click.Choice(RELEASE_TYPES),
    default=None,
    help="Release type. (default: minor)",
)
@click.option(
    "-s",
    "--source-ref",
    default=None,
    help="Branch or version of PACKAGE to release from. (default: master)",
)
@click.option(
    "-m",
    "--mode",
    type=click.Choice(RUN_MODES),
    default=None,
    help="sandbox only prints the plan. (default: sandbox)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Config file (releaser.toml or pyproject.toml).",
)
def release(
    package: str,
    owner: str | None,
    token: str | None,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    release_type: str | None,
    source_ref: str | None,
    mode: str | None,
    config_path: Path | None,
) -> None:
    """Release PACKAGE and the dependencies it needs released."""
    try:
        config = load_config(config_path)
    except ReleaserError as exc:
        raise click.ClickException(str(exc)) from exc

    updates: dict[str, object] = {}
    if owner:
        updates["owner"] = owner
    if include:
        updates["include"] = list(include)
    if exclude:
        updates["exclude"] = list(exclude)
    if release_type:
        updates["type"] = release_type
    if source_ref:
        updates["source_ref"] = source_ref
    if mode:
        updates["mode"] = mode
    config = config.model_copy(update=updates)

    if not config.owner:
        raise click.UsageError("No owner given. Pass --owner or set owner in the config.")

    client = GitHubClient(config.owner, token)

    try:
        plan, executed = run_release(
            client,
            package,
            mode=config.mode,
            confirm=_confirm,
            source_ref=config.source_ref,
            release_type=config.type,
            name_filter=config.name_filter,
            manifest_path=config.manifest_path,
            max_scan_passes=config.max_scan_passes,
            max_order_passes=config.max_order_passes,
        )
    except ReleaserError as exc:
        raise click.ClickException(str(exc)) from exc

    if not plan.order:
        return
    if not executed:
        if config.mode == "sandbox":
            click.echo("\nSandbox mode: nothing was released.")
            return
        raise click.ClickException("Aborted, nothing was released.")

    click.echo(f"\n{'=' * 60}\nAll done!\n{'=' * 60}")
