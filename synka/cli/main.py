"""Click entry point: parse flags, load configuration, run the app."""

from __future__ import annotations

import asyncio

import click

from synka import __version__
from synka.config import load_config
from synka.errors import ConfigError


@click.command(
    name="synka",
    help="Synka synchronizes Kubernetes state between clusters.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "--config",
    "config_file",
    default=None,
    help="Path to synka configuration file. [env: SYNKA_CONFIG; default: /etc/synka/config.yaml]",
)
@click.option(
    "--kubeconfig",
    default=None,
    help="Path to a kubeconfig for the source cluster. Only required if out-of-cluster.",
)
@click.option(
    "--master",
    default=None,
    help="Address of the source Kubernetes API server. Overrides any value in kubeconfig.",
)
@click.option(
    "--resource",
    "--informer",
    "resources",
    multiple=True,
    help="Resource to watch as resource.version.group, e.g. deployments.v1.apps. Repeatable.",
)
@click.option("--workers", type=click.IntRange(min=1, max=64), default=None, help="Workers per resource.")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Log verbosity.",
)
@click.option(
    "--metrics-port",
    type=click.IntRange(min=0, max=65535),
    default=None,
    help="Serve Prometheus metrics on this port (0 disables).",
)
@click.version_option(__version__, prog_name="synka")
def cli(
    config_file: str | None,
    kubeconfig: str | None,
    master: str | None,
    resources: tuple[str, ...],
    workers: int | None,
    log_level: str | None,
    metrics_port: int | None,
) -> None:
    from synka.app import main

    try:
        config = load_config(
            config_file=config_file,
            kubeconfig=kubeconfig,
            master=master,
            resources=list(resources) or None,
            workers=workers,
            log_level=log_level,
            metrics_port=metrics_port,
        )
    except (ConfigError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc

    asyncio.run(main(config))
