#!/usr/bin/env python3
"""
cargo-verify CLI

Usage:
    cargo-verify --help
    cargo-verify --backend klee --path crates/foo
    cargo-verify --backend klee --tests --test parse -j 4
    cargo-verify --backend seahorn --backend-flags=--horn-stats=false
    cargo-verify --backend klee -r -- arg1 arg2
    cargo verify ...          # as a cargo subcommand
"""

import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
from click.core import ParameterSource
from rich.console import Console
from rich.markup import escape

from . import Backend, __version__
from .driver import VerificationDriver
from .errors import ToolError, VerifyError
from .utils.config import Opt, default_jobs, load_config
from .utils.logging import setup_logger
from .verification import Status

console = Console()
err_console = Console(stderr=True)


def print_error(message: str):
    """Print error message."""
    err_console.print(f"[red]ERROR:[/red] {escape(message)}", highlight=False)


def print_result(status: Status):
    """Print the final verdict line."""
    color = "green" if status.is_success else "red"
    console.print(f"VERIFICATION_RESULT: [{color}]{status}[/{color}]", highlight=False)


def echo(line: str) -> None:
    """Plain stdout line (test progress, backend output)."""
    click.echo(line)


# Value of a bare `-j`
AUTO_JOBS = -1

# Option name -> Opt field, for merging a config file with the command line
_OPTION_FIELDS = {
    "crate_path": "crate_path",
    "backend": "backend",
    "backend_flags": "backend_flags",
    "features": "features",
    "clean": "clean",
    "tests": "tests",
    "test_filters": "test",
    "jobs": "jobs",
    "replay": "replay",
    "verbosity": "verbosity",
    "args": "args",
}


def build_opt(ctx: click.Context, config: Optional[str], params: Dict[str, Any]) -> Opt:
    """Merge config file defaults with command-line options."""
    data: Dict[str, Any] = load_config(config) if config else {}

    for param, field_name in _OPTION_FIELDS.items():
        value = params[param]
        from_cli = ctx.get_parameter_source(param) == ParameterSource.COMMANDLINE
        if from_cli or field_name not in data:
            data[field_name] = value

    # A bare `-j` (or no -j at all) means one job per CPU
    if data.get("jobs") in (None, AUTO_JOBS):
        data["jobs"] = default_jobs()

    return Opt.from_dict(data)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="cargo-verify")
@click.option('--path', 'crate_path', type=click.Path(file_okay=False, path_type=Path),
              default='.', show_default=True, help='Filesystem path to local crate to verify')
@click.option('--backend', '-b', type=click.Choice([b.value for b in Backend], case_sensitive=False),
              default=Backend.KLEE.value, show_default=True, help='Select verification backend')
@click.option('--backend-flags', type=str, default=None,
              help='Extra verification flags, comma separated')
@click.option('--features', multiple=True, help='Extra cargo features to enable')
@click.option('--clean', '-c', is_flag=True, help='Run `cargo clean` first')
@click.option('--tests', '-t', is_flag=True, help="Verify all tests instead of 'main'")
@click.option('--test', 'test_filters', multiple=True, metavar='TESTNAME',
              help='Only verify tests containing this string in their names')
@click.option('--jobs', '-j', type=int, default=None, is_flag=False, flag_value=AUTO_JOBS, metavar='N',
              help='Number of parallel jobs, defaults to # of CPUs')
@click.option('--replay', '-r', count=True, help='Replay to display concrete input values (-rr: all inputs)')
@click.option('--verbose', '-v', 'verbosity', count=True, help='Increase message verbosity')
@click.option('--config', type=click.Path(exists=True, dir_okay=False), default=None,
              help='YAML file with default option values')
@click.argument('args', nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def cli(ctx, crate_path: Path, backend: str, backend_flags: Optional[str], features: Tuple[str, ...],
        clean: bool, tests: bool, test_filters: Tuple[str, ...], jobs: Optional[int], replay: int,
        verbosity: int, config: Optional[str], args: Tuple[str, ...]):
    """
    Execute verification tools on a Rust crate.

    \b
    Arguments after `--` are passed to the program under test.
    """
    params = dict(
        crate_path=crate_path, backend=backend, backend_flags=backend_flags,
        features=features, clean=clean, tests=tests, test_filters=test_filters,
        jobs=jobs, replay=replay, verbosity=verbosity, args=args,
    )

    try:
        opt = build_opt(ctx, config, params)
    except (VerifyError, ValueError, FileNotFoundError) as e:
        print_error(str(e))
        ctx.exit(1)

    setup_logger(verbosity=opt.verbosity)

    try:
        driver = VerificationDriver(opt, echo=echo)
        driver.check_tools()
        status = driver.run()
    except ToolError as e:
        print_error(str(e))
        if opt.verbosity > 0:
            err_console.print(e.details(), markup=False, highlight=False)
        ctx.exit(1)
    except VerifyError as e:
        print_error(str(e))
        ctx.exit(1)

    print_result(status)

    if not status.is_success:
        ctx.exit(1)


def main():
    """Main entry point."""
    argv = sys.argv[1:]
    # `cargo verify ...` runs `cargo-verify verify ...`
    if argv and argv[0] == "verify":
        argv = argv[1:]
    cli.main(args=argv, prog_name="cargo-verify")


if __name__ == "__main__":
    main()
