import os
from typing import Callable

import click
from src.modules.simulation.commands import create_simulate_command
from src.modules.logging import LOGGER_TYPES, LOG_LEVELS, create_logger


class GracestopContext:
    """Context object to store CLI state."""
    def __init__(self):
        self.logger = None
        self.exit_func: Callable[[int], None] = os._exit

pass_context = click.make_pass_decorator(GracestopContext, ensure=True)

@click.group()
@click.option('--output', '-o',
              type=click.Choice(list(LOGGER_TYPES)),
              default='colorful',
              help='Output format (colorful for CLI, plain for CI/file, json for machine parsing)',
              envvar='GRACESTOP_OUTPUT')
@click.option('--log-level', '-l',
              type=click.Choice(LOG_LEVELS),
              default='INFO',
              help='Set the logging level',
              envvar='GRACESTOP_LOG_LEVEL')
@pass_context
def cli(ctx, output, log_level):
    """gracestop: bounded-time graceful shutdown for long-running processes."""
    ctx.logger = create_logger(output, log_level)

cli.add_command(create_simulate_command())

def main():
    cli()

if __name__ == '__main__':
    main()
