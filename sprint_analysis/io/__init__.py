"""Run definition loading and result export."""

from sprint_analysis.io.run_file import (
    RunDefinition,
    hfvp_points_dataframe,
    load_run_file,
    parse_run_definition,
    steps_dataframe,
    write_json,
    write_steps_csv,
)

__all__ = [
    "RunDefinition",
    "load_run_file",
    "parse_run_definition",
    "steps_dataframe",
    "hfvp_points_dataframe",
    "write_steps_csv",
    "write_json",
]
