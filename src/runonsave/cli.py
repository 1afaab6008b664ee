"""CLI entry point for runonsave: re-runs a command whenever watched files settle."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from runonsave import __version__
from runonsave.orchestrator import Orchestrator, serve
from runonsave_core.config import DEFAULT_CONFIG_NAME, DEFAULT_DEBOUNCE_MS, WatchConfig, load_config_file
from runonsave_core.errors import ConfigurationError, RunOnSaveError
from runonsave_core.models import BUSY_POLICIES
from runonsave_core.notifier import ConsoleNotifier

logger = logging.getLogger(__name__)

# Default config template written by --init
DEFAULT_CONFIG_TEMPLATE = """\
# Auto-generated runonsave.toml
# Command-line flags override the values below.

[watch]
command = ["pytest", "-q"]
debounce_ms = 50
paths = ["."]
skip_ignore_files = false
# patterns = ["*.py"]
on_busy = "queue"
kill_on_exit = false
"""


def create_default_config(config_path: Path) -> bool:
    """
    Create a default runonsave.toml if it doesn't exist.

    Args:
        config_path: Path where config should be created

    Returns:
        True if config was created, False if it already exists

    Raises:
        PermissionError: If unable to write to the directory
        OSError: If other file system errors occur
    """
    if config_path.exists():
        return False

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG_TEMPLATE)
    return True


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Everything from COMMAND onwards is passed to the command untouched.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="runonsave",
        description="Re-run a command whenever files under the watched paths change.",
        epilog="Examples:\n"
        "  runonsave make                       # Rebuild on every save\n"
        "  runonsave -d 200 -p src pytest -x    # Watch src/ only, 200ms quiet period\n"
        "  runonsave --on-busy restart ./serve  # Restart a long-running process\n"
        "  runonsave --init                     # Write a default runonsave.toml",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-d",
        "--debounce",
        type=int,
        metavar="DEBOUNCE_MS",
        help=f"Quiet period in milliseconds before running (default: {DEFAULT_DEBOUNCE_MS})",
    )

    parser.add_argument(
        "-p",
        "--path",
        action="append",
        dest="paths",
        metavar="PATH",
        help="Directory to watch recursively; repeatable (default: .)",
    )

    parser.add_argument(
        "--skip-ignore-files",
        action="store_true",
        help="Do not read .gitignore/.ignore files and do not skip hidden entries",
    )

    parser.add_argument(
        "-g",
        "--glob",
        action="append",
        dest="globs",
        metavar="PATTERN",
        help="Only changes matching this gitignore-style pattern trigger; repeatable",
    )

    parser.add_argument(
        "--on-busy",
        choices=BUSY_POLICIES,
        help="On a change while the command runs: queue one re-run (default) or restart it",
    )

    parser.add_argument(
        "--kill-on-exit",
        action="store_true",
        help="Terminate a running command on shutdown instead of waiting for it",
    )

    parser.add_argument(
        "-c",
        "--config",
        help=f"Path to config file (default: {DEFAULT_CONFIG_NAME} if present)",
    )

    parser.add_argument(
        "--init",
        action="store_true",
        help=f"Create a default {DEFAULT_CONFIG_NAME} and exit",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output to stderr",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        metavar="COMMAND [ARGS ...]",
        help="Command to run and its arguments",
    )

    return parser.parse_args(argv)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    level = logging.DEBUG if verbose else logging.WARNING
    for name in ("runonsave", "runonsave_core"):
        logging.getLogger(name).setLevel(level)


def _resolve_config_path(config_arg: str | None) -> Path | None:
    if config_arg:
        return Path(config_arg).resolve()
    default = Path(DEFAULT_CONFIG_NAME)
    if default.is_file():
        return default.resolve()
    return None


def build_config(args: argparse.Namespace) -> WatchConfig:
    """
    Merge defaults, config file and command-line flags into a WatchConfig.

    Raises:
        ConfigurationError: If no command is given or a value is invalid
    """
    values: dict = {}

    config_path = _resolve_config_path(args.config)
    if config_path is not None:
        values.update(load_config_file(config_path))

    command = list(args.command or [])
    if command and command[0] == "--":
        command = command[1:]
    if command:
        values["command"] = command[0]
        values["args"] = tuple(command[1:])

    if args.debounce is not None:
        values["debounce_ms"] = args.debounce
    if args.paths:
        values["paths"] = tuple(Path(p) for p in args.paths)
    if args.skip_ignore_files:
        values["use_ignore_files"] = False
    if args.globs:
        values["patterns"] = tuple(args.globs)
    if args.on_busy:
        values["on_busy"] = args.on_busy
    if args.kill_on_exit:
        values["kill_on_exit"] = True

    if "command" not in values:
        raise ConfigurationError("No command given (pass COMMAND or set 'command' in the config file)")

    config = WatchConfig(**values)
    config.validate()
    return config


def run_watch(orchestrator: Orchestrator) -> None:
    """Block running the watch loop until SIGINT/SIGTERM."""
    asyncio.run(serve(orchestrator))


def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for runonsave CLI.

    Handles:
    - Argument parsing and config file merging
    - --init config creation
    - Running the watch loop
    - Error handling and exit codes
    """
    args = parse_args(argv)
    configure_logging(args.verbose)

    try:
        if args.init:
            config_path = Path(args.config or DEFAULT_CONFIG_NAME).resolve()
            if create_default_config(config_path):
                print(f"Created default config at: {config_path}")
            else:
                print(f"Config already exists: {config_path}")
            return

        config = build_config(args)
        orchestrator = Orchestrator(config, notifier=ConsoleNotifier())
        run_watch(orchestrator)

    except KeyboardInterrupt:
        # Gracefully handle Ctrl+C where no signal handler could be installed
        sys.exit(130)
    except RunOnSaveError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (PermissionError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
