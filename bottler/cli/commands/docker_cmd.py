"""test-bot-docker: build bottles for formulae in a Docker container."""

from __future__ import annotations

from pathlib import Path

import typer

from bottler.brew.client import BrewClient
from bottler.cli.commands._helpers import value_or_exit, version_option
from bottler.cli.context import build_context
from bottler.core.result import Err
from bottler.services.docker_bot import DockerTestBotService, print_plan
from bottler.services.errors import BottleError


def docker_test_bot(
    ctx: typer.Context,
    version: bool = version_option(),
) -> None:
    """Build a bottle for the given formulae using a Docker container.

    Every argument, flags included, is passed on to `brew test-bot`.
    """
    cli = build_context()
    args = list(ctx.args)
    if not args:
        no_formulae = BottleError(kind="no_formulae", message="No formula has been specified")
        value_or_exit(Err(no_formulae), cli)
        return

    cwd = Path.cwd()
    service = DockerTestBotService(
        config=cli.config,
        console=cli.console,
        merger=BrewClient(env=cli.config.env, cwd=cwd),
        cwd=cwd,
    )
    value_or_exit(service.check_credentials(), cli)
    print_plan(cli.console, cli.config, args)
    value_or_exit(service.run(args), cli)

