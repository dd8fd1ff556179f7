"""Run command for Ralph CLI."""

import asyncio
import logging
import signal
import sys
from pathlib import Path

import click

from ralph_loop.config import ConfigError, RalphConfig, apply_overrides, load_config
from ralph_loop.models.display import DisplayEvent, DisplayKind
from ralph_loop.models.session import SessionStatus
from ralph_loop.services.session_service import SessionController
from ralph_loop.utils.logging import cleanup_old_logs, new_session_id, setup_logging

logger = logging.getLogger(__name__)

# Kinds whose first line is a tool call summary with details beneath it
NESTED_KINDS = {DisplayKind.TOOL_RESULT, DisplayKind.NO_RESULT, DisplayKind.ORPHAN_RESULT}


def render_event(event: DisplayEvent) -> str:
    if event.kind in NESTED_KINDS and event.lines:
        head, *rest = event.lines
        if event.is_error:
            head = f"{head} [error]"
        return "\n".join([head, *(f"  {line}" for line in rest)])
    return event.text


def echo_event(event: DisplayEvent) -> None:
    click.echo(render_event(event), err=event.kind == DisplayKind.STDERR)


async def run_session(config: RalphConfig) -> SessionStatus:
    """Drive one controller until it leaves Running. Ctrl-C requests a manual stop."""
    controller = SessionController(config, on_display=echo_event)
    loop = asyncio.get_running_loop()
    stop_tasks = []

    def request_stop():
        if stop_tasks:
            return
        click.echo("Stopping...", err=True)
        stop_tasks.append(asyncio.create_task(controller.stop()))

    try:
        loop.add_signal_handler(signal.SIGINT, request_stop)
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT handler not supported here")

    try:
        if not await controller.start():
            return controller.status
        status = await controller.wait()
        if stop_tasks:
            await stop_tasks[0]
        return status
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="JSON config file (default: ~/.ralph/config.json)",
)
@click.option("--iterations", type=int, help="Iteration budget: -1 infinite, 0 disabled, N bounded")
@click.option("--prompt", "prompt_path", help="Prompt file piped to Claude")
@click.option("--specs", "specs_dir", help="Specs directory containing README.md")
@click.option("--log-level", help="Log level: trace, debug, info, warn, error")
def run(config_path, iterations, prompt_path, specs_dir, log_level):
    """Run Claude in a loop while the specs status table lists work."""
    try:
        config = load_config(config_path)
        config = apply_overrides(
            config,
            {
                "behavior": {"iterations": iterations},
                "paths": {"prompt": prompt_path, "specs": specs_dir},
                "logging": {"level": log_level},
            },
        )
    except ConfigError as e:
        raise click.ClickException(str(e))

    session_id = new_session_id()
    setup_logging(config.logging.level, session_id)
    cleanup_old_logs()

    if config.behavior.iterations == 0:
        click.echo("Iterations set to 0, nothing to run")
        return

    status = asyncio.run(run_session(config))
    logger.info(f"session_end status={status.value}")
    if status == SessionStatus.ERROR:
        sys.exit(1)
