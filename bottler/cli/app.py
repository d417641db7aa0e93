from __future__ import annotations

import typer

from bottler.cli.commands.bottle_pr_cmd import build_bottle_pr
from bottler.cli.commands.docker_cmd import docker_test_bot


bottle_pr_app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    rich_markup_mode="rich",
)
bottle_pr_app.command("build-bottle-pr")(build_bottle_pr)


docker_app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    rich_markup_mode="rich",
)
# Unknown flags belong to `brew test-bot`.
docker_app.command(
    "test-bot-docker",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)(docker_test_bot)


def main_bottle_pr() -> None:
    bottle_pr_app()


def main_test_bot_docker() -> None:
    docker_app()
