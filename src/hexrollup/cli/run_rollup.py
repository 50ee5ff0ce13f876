"""Core hex rollup execution logic.

This module contains the actual pipeline runner, separated from argument
parsing. Scripts are thin wrappers; this is the real implementation.
"""

import argparse
import json
import logging
import importlib.util
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from hexrollup.setup_directories import setup_output_directories
from hexrollup.pipeline.orchestrator import RollupOrchestrator
from hexrollup.schemas import resolve_config, ParamConfig, UserConfig, CLIConfig


logger = logging.getLogger(__name__)


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file.

    Returns the raw dict before Pydantic validation.

    Parameters
    ----------
    config_path : str
        Path to user config Python file containing CONFIG dict.

    Returns
    -------
    dict
        Raw user configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If no CONFIG dict found in file.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def run_rollup_pipeline(
    user_config_path: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None,
    rerun: bool = False,
    verbose: bool = False,
) -> Dict:
    """Execute one hex rollup run.

    1. Loads and resolves configuration (Param < User < CLI)
    2. Sets up output directories
    3. Optionally cleans the output directory if rerun=True
    4. Runs the orchestrator and returns its summary

    Parameters
    ----------
    user_config_path : str, optional
        Path to user config file (Python file with CONFIG dict).
    cli_args : dict, optional
        CLI argument overrides. Keys: base_dir, source_db, start_level,
        no_rollup, no_plots, log_level. All optional.
    rerun : bool, optional
        If True, delete the output directory (store included) before running.
    verbose : bool, optional
        If True, enable DEBUG logging and print full resolved config.

    Returns
    -------
    dict
        Run summary from ``RollupOrchestrator.run()``.

    Examples
    --------
    Run with CLI overrides::

        run_rollup_pipeline(
            "config/my_config.py",
            cli_args={"source_db": "users.db", "start_level": 4},
        )
    """
    param_cfg = ParamConfig()

    if user_config_path:
        user_cfg = UserConfig.model_validate(load_user_config_dict(user_config_path))
    else:
        user_cfg = UserConfig()

    cli_args = dict(cli_args or {})
    if verbose and not cli_args.get("log_level"):
        cli_args["log_level"] = "DEBUG"

    # Filter None values
    cli_dict = {k: v for k, v in cli_args.items() if v is not None}
    cli_cfg = CLIConfig.model_validate(cli_dict) if cli_dict else CLIConfig()

    config = resolve_config(param_cfg, user_cfg, cli_cfg)

    if rerun:
        import shutil
        base_dir_path = Path(config.base_dir)
        if base_dir_path.exists():
            print(f"Cleaning output directory: {base_dir_path}")
            shutil.rmtree(base_dir_path)
            print("Output directory cleaned")

    output_dirs = setup_output_directories(config.base_dir)

    print(f"\n{'='*60}")
    print("Hex Rollup Pipeline")
    print('='*60)
    print(f"Config: {user_config_path or '(defaults)'}")
    print(f"Source: {config.source.db_path}")
    print(f"Levels: {[level.resolution for level in config.levels]}")
    if config.start_level is not None:
        print(f"Start:  level {config.start_level}")
    print(f"Output: {config.base_dir}")
    print('='*60)

    if verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2, default=str))
        print('='*60)

    orchestrator = RollupOrchestrator(config, output_dirs)
    orchestrator.setup_logging()
    return orchestrator.run()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Roll point visits up into H3 hexagon levels",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  hexrollup scripts/user_config.py
  hexrollup scripts/user_config.py --source-db users.db --start-level 4
  hexrollup --source-db users.db --base-dir /tmp/hexrollup --no-plots
        """,
    )
    parser.add_argument("config", nargs="?", default=None,
                        help="Python file with a CONFIG dict (optional)")
    parser.add_argument("--source-db", help="SQLite database holding the point table")
    parser.add_argument("--base-dir", help="Output base directory")
    parser.add_argument("--start-level", type=int,
                        help="Skip levels coarser than this resolution")
    parser.add_argument("--no-rollup", action="store_true", default=None,
                        help="Skip the hierarchical rollup stage")
    parser.add_argument("--no-plots", action="store_true", default=None,
                        help="Skip PNG hex maps")
    parser.add_argument("--log-level",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--rerun", action="store_true",
                        help="Delete the output directory before running")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="DEBUG logging and print resolved config")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    cli_args = {
        "source_db": args.source_db,
        "base_dir": args.base_dir,
        "start_level": args.start_level,
        "no_rollup": args.no_rollup,
        "no_plots": args.no_plots,
        "log_level": args.log_level,
    }

    try:
        summary = run_rollup_pipeline(
            args.config, cli_args=cli_args, rerun=args.rerun, verbose=args.verbose
        )
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
