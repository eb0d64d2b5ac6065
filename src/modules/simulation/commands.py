import click
from typing import Optional, TextIO, Tuple
from .command.simulate import SimulateCommand


def create_simulate_command() -> click.Command:
    """Create the simulate command."""

    @click.command(name='simulate')
    @click.option('--config', 'config_file', type=click.File('r'),
                  help='YAML file with a shutdown budget',
                  envvar='GRACESTOP_CONFIG')
    @click.option('--callback-delay', type=float, multiple=True,
                  help='Register a cleanup callback taking this many seconds (repeatable)')
    @click.option('--failing-callback', count=True,
                  help='Register a cleanup callback that raises (repeatable)')
    @click.option('--store-delay', type=float, help='Seconds the simulated store takes to close')
    @click.option('--store-hang', is_flag=True, help='Simulated store never finishes closing')
    @click.option('--store-fail', is_flag=True, help='Simulated store fails to close')
    @click.option('--renderer-fail', is_flag=True, help='Simulated renderer fails to close')
    @click.option('--wait-for-signal', is_flag=True,
                  help='Keep running until SIGINT or SIGTERM instead of shutting down right away')
    @click.pass_context
    def simulate(
        ctx,
        config_file: Optional[TextIO],
        callback_delay: Tuple[float, ...],
        failing_callback: int,
        store_delay: Optional[float],
        store_hang: bool,
        store_fail: bool,
        renderer_fail: bool,
        wait_for_signal: bool
    ):
        """Host synthetic cleanup work and shut it down gracefully."""
        command = SimulateCommand(logger=ctx.obj.logger, exit_func=ctx.obj.exit_func)
        try:
            config = command.load_config(config_file)
        except ValueError as err:
            raise click.UsageError(f"Invalid shutdown configuration: {err}")

        command.run(
            config,
            list(callback_delay),
            failing_callbacks=failing_callback,
            store_delay=store_delay,
            store_hang=store_hang,
            store_fail=store_fail,
            renderer_fail=renderer_fail,
            wait_for_signal=wait_for_signal
        )

    return simulate
