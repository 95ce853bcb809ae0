"""Kindle CLI - Main Entry Point.

Commands:
    boot   - Run every unit hook and wait until the bootstrap is ready
    hooks  - Show units in load order and the hook file each one provides
"""

import asyncio
import logging
import sys
from typing import Optional, Tuple

import click

from kindle import __version__
from kindle.config import BootConfig, ConfigLoader
from kindle.faults import ConfigurationFault, LoadFault
from kindle.lifecycle import LifecycleCoordinator
from kindle.loader import FileHookResolver
from kindle.units import StaticUnitResolver

from . import __cli_name__
from .utils.colors import success, error, warning, dim, bold, kv, badge, _CHECK, _CROSS, _ARROW


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _load_config(base_dir: str, kind: str, env: Optional[str], env_file: Optional[str],
                 timeout: Optional[float] = None) -> BootConfig:
    loader = ConfigLoader.load(base_dir, env=env, env_file=env_file)
    return BootConfig.from_loader(loader, base_dir, kind, ready_timeout=timeout)


async def _boot(config: BootConfig, wait: Optional[float]) -> Tuple[bool, dict]:
    coordinator = LifecycleCoordinator(config)
    try:
        await coordinator.start()
        try:
            await coordinator.wait_ready(wait)
        except asyncio.TimeoutError:
            return False, coordinator.get_status()
        return True, coordinator.get_status()
    finally:
        coordinator.close()


@click.group()
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.option('--quiet', '-q', is_flag=True, help='Minimal output')
@click.pass_context
def cli(ctx, verbose: bool, quiet: bool):
    """Bootstrap coordination for modular applications.

    \b
    Quick start:
      kindle hooks .
      kindle boot . --kind app
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet


# ============================================================================
# Commands
# ============================================================================

@cli.command('boot')
@click.argument('base_dir', default='.', type=click.Path(file_okay=False))
@click.option('--kind', type=click.Choice(['app', 'agent']), default='app', help='Hook kind to load')
@click.option('--env', type=str, help='Config environment (default: $KINDLE_ENV or local)')
@click.option('--env-file', type=str, help='.env file with KINDLE_* settings')
@click.option('--timeout', type=float, help='Seconds before a slow ready task is reported')
@click.option('--wait', type=float, help='Give up if not ready after this many seconds')
@click.pass_context
def boot(ctx, base_dir: str, kind: str, env: Optional[str], env_file: Optional[str],
         timeout: Optional[float], wait: Optional[float]):
    """
    Load every unit hook and wait for readiness.

    Examples:
      kindle boot
      kindle boot ./service --kind agent --timeout 30
      kindle boot ./service --wait 60
    """
    try:
        config = _load_config(base_dir, kind, env, env_file, timeout)
    except ConfigurationFault as e:
        error(f"  {_CROSS} {e}")
        sys.exit(1)

    level = logging.DEBUG if ctx.obj['verbose'] else getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    try:
        ready, status = asyncio.run(_boot(config, wait))
    except LoadFault as e:
        error(f"  {_CROSS} Bootstrap failed: {e}")
        sys.exit(1)

    if not ready:
        warning(f"  {_CROSS} {config.name} not ready after {wait} seconds")
        kv("Pending", ", ".join(status["pending"]) or "-")
        sys.exit(1)

    if not ctx.obj['quiet']:
        success(f"  {_CHECK} {config.name} is ready")
        kv("Kind", status["kind"])
        kv("Hooks", str(len(status["hooks"])))


@cli.command('hooks')
@click.argument('base_dir', default='.', type=click.Path(file_okay=False))
@click.option('--kind', type=click.Choice(['app', 'agent']), default='app', help='Hook kind to list')
@click.option('--env', type=str, help='Config environment (default: $KINDLE_ENV or local)')
def hooks(base_dir: str, kind: str, env: Optional[str]):
    """
    List units in load order without running any hook.

    Examples:
      kindle hooks
      kindle hooks ./service --kind agent
    """
    try:
        config = _load_config(base_dir, kind, env, None)
        units = StaticUnitResolver.from_config(config).get_load_units()
    except ConfigurationFault as e:
        error(f"  {_CROSS} {e}")
        sys.exit(1)

    files = FileHookResolver()
    click.echo(bold(f"{config.name} ({config.kind.value})"))
    for index, unit in enumerate(units, 1):
        path = files.locate(unit, config.kind)
        if path is None:
            click.echo(f"  {index}. {badge(unit.name, style='skip')}")
            dim(f"       no {config.kind.filename}")
        else:
            click.echo(f"  {index}. {badge(unit.name)} {_ARROW} {path}")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == '__main__':
    main()
