"""Hex rollup user configuration.

This is the user-facing configuration file. Modify settings here to customize
the pipeline behavior. Expert defaults live in hexrollup.schemas.param.

Usage:
    python scripts/run_rollup.py scripts/user_config.py
    python scripts/run_rollup.py scripts/user_config.py --start-level 4
"""

CONFIG = {
    # ========================================================================
    # SOURCE & OUTPUT
    # ========================================================================
    "SOURCE_DB": "data/users.db",        # SQLite file with the points table
    "SOURCE_TABLE": "cities_with_users", # latitude, longitude, visits, last_visit
    "BASE_DIR": "./output",              # Store, exports, plots and logs go here
    "STORE_DB": "hex_levels.db",         # Per-resolution tables h3_level_N

    # ========================================================================
    # LEVELS
    # ========================================================================
    # Omit LEVELS to use the defaults (2 replace, 3 global, 4-7 regional).
    # "LEVELS": [
    #     {"resolution": 2, "policy": "replace",
    #      "exclusion": {"min_visits": 2, "require_last_visit": True}},
    #     {"resolution": 3},
    #     {"resolution": 5, "region": {"north": 43.7914, "west": -9.3015,
    #                                  "south": 35.9468, "east": 4.6362}},
    # ],
    "START_LEVEL": None,                 # Skip levels coarser than this
    "INVALID_POINT_POLICY": "skip_point",# or "fail_fast"

    # ========================================================================
    # ROLLUP
    # ========================================================================
    "ROLLUP": True,
    "ROLLUP_FROM": 3,                    # Persisted level summed upwards
    "ROLLUP_TO": [2, 1],                 # Strictly decreasing

    # ========================================================================
    # EXPORT
    # ========================================================================
    "EXPORT_JSON": True,
    "EXPORT_GEOJSON": True,
    "PLOTS": True,
}
