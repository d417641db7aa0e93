"""build-bottle-pr: submit pull requests to build bottles for formulae."""

from __future__ import annotations

from pathlib import Path

import typer

from bottler.brew.client import BrewClient
from bottler.cli.commands._helpers import exit_with_code, value_or_exit, version_option
from bottler.cli.context import build_context
from bottler.core.errors import ErrorCode
from bottler.core.result import Err
from bottler.output.console import Style
from bottler.services.bottle_pr import BottlePrOptions, BottlePrService, collect_formulae
from bottler.services.errors import BottleError
from bottler.services.hub import HubClient, detect_capabilities, ensure_hub_available


def build_bottle_pr(
    formulae: list[str] | None = typer.Argument(None, help="Formulae to build bottles for."),
    remote: str | None = typer.Option(
        None,
        "--remote",
        help="GitHub remote to push to (default: $HOMEBREW_GITHUB_USER, then $USER).",
    ),
    tag: str | None = typer.Option(None, "--tag", help="Bottle tag (default: x86_64_linux)."),
    limit: int | None = typer.Option(
        None, "--limit", min=0, help="Make at most this many PRs at once (default: 10)."
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not actually make any PRs."),
    verbose: bool = typer.Option(False, "--verbose", help="Print extra information."),
    force: bool = typer.Option(
        False,
        "--force",
        help="Delete local and remote 'bottle-<name>' branches if they exist. Use with care.",
    ),
    browse: bool = typer.Option(False, "--browse", help="Open the new PR in a web browser."),
    keep_old: bool = typer.Option(
        False, "--keep-old", help="Add --keep-old to the CircleCI configuration."
    ),
    no_deps: bool = typer.Option(
        False, "--no-deps", help="Do not add the dependencies of the given formulae."
    ),
    version: bool = version_option(),
) -> None:
    """Submit a pull request to build a bottle for each formula."""
    ctx = build_context()
    pr_config = ctx.config.pr

    value_or_exit(ensure_hub_available(), ctx)
    if not formulae:
        no_formulae = BottleError(kind="no_formulae", message="No formula has been specified")
        value_or_exit(Err(no_formulae), ctx)
        return

    cwd = Path.cwd()
    capabilities = detect_capabilities(cwd=cwd, min_version=pr_config.hub_min_version)
    if verbose and capabilities.version is not None:
        ctx.console.print(f"hub {capabilities.version}", Style.DIM)

    store = BrewClient(env=ctx.config.env, cwd=cwd)
    loaded = value_or_exit(
        collect_formulae(
            store,
            formulae,
            with_deps=not no_deps,
            console=ctx.console,
            verbose=verbose,
        ),
        ctx,
    )

    options = BottlePrOptions(
        tag=tag or pr_config.default_tag,
        limit=pr_config.default_limit if limit is None else limit,
        remote=remote,
        dry_run=dry_run,
        verbose=verbose,
        force=force,
        browse=browse,
        keep_old=keep_old,
    )
    service = BottlePrService(
        config=ctx.config,
        options=options,
        console=ctx.console,
        hosting=HubClient(capabilities=capabilities, cwd=cwd),
        store=store,
    )
    summary = value_or_exit(service.run(loaded), ctx)
    if not summary.ok:
        ctx.console.error(f"Failed: {', '.join(summary.failed)}")
        exit_with_code(int(ErrorCode.BUILD_ERROR))
