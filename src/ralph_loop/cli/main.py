"""Main CLI entry point for Ralph."""

import click

from ralph_loop.cli.commands.run import run
from ralph_loop.cli.commands.specs import specs


@click.group()
def cli():
    """Ralph - run Claude in a loop until the specs are done."""
    pass


cli.add_command(run)
cli.add_command(specs)


if __name__ == "__main__":
    cli()
