"""
Directory setup for the hex rollup pipeline.

Flat layout under one base directory:
- db/       per-resolution store and run ledger
- exports/  level JSON and GeoJSON (exports/rollup/ for derived levels)
- plots/    static hex maps
- logs/     one log file per run
"""

from pathlib import Path


def setup_output_directories(base_output_dir=None, verbose=False):
    """
    Set up organized output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path, optional
        Base output directory. If None, uses ./output.
    verbose : bool, optional
        Print the created directories.

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'db', 'exports', 'plots', 'logs'
    """
    if base_output_dir is None:
        base_output_dir = Path.cwd() / "output"

    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {
        "base": base_output_dir,
        "db": base_output_dir / "db",
        "exports": base_output_dir / "exports",
        "plots": base_output_dir / "plots",
        "logs": base_output_dir / "logs",
    }

    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    if verbose:
        print("\nOutput directories created:")
        for key, path in directories.items():
            print(f"  {key:12s}: {path}")
        print("=" * 70 + "\n")

    return directories


def get_level_export_path(output_dirs, resolution, suffix="json", derived=False):
    """
    Path of a level export file.

    Parameters
    ----------
    output_dirs : dict
        Output directories from setup_output_directories()
    resolution : int
        H3 resolution of the level
    suffix : str
        File extension without the dot ('json' or 'geojson')
    derived : bool
        True for rollup outputs (exports/rollup/reports_h3_level_N.*)

    Example
    -------
    >>> get_level_export_path(dirs, 5, "geojson")
    Path('output/exports/h3_level_5.geojson')
    """
    suffix = suffix.lstrip(".")
    if derived:
        return Path(output_dirs["exports"]) / "rollup" / f"reports_h3_level_{resolution}.{suffix}"
    return Path(output_dirs["exports"]) / f"h3_level_{resolution}.{suffix}"
