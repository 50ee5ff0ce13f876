#!/usr/bin/env python3
"""Hex rollup pipeline runner.

Usage:
    python scripts/run_rollup.py scripts/user_config.py
    python scripts/run_rollup.py scripts/user_config.py --start-level 4
    python scripts/run_rollup.py --source-db users.db --no-plots

Note: User config in scripts/user_config.py, expert defaults in
hexrollup.schemas.param
"""

import sys

from hexrollup.cli.run_rollup import main


if __name__ == "__main__":
    sys.exit(main())
