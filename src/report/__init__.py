from __future__ import annotations

from .emit import format_cpp_initializer, format_results, results_payload, write_results_json
from .tables import energy_table, hotcell_table, scan_table, write_tables

__all__ = [
    "energy_table",
    "format_cpp_initializer",
    "format_results",
    "hotcell_table",
    "results_payload",
    "scan_table",
    "write_results_json",
    "write_tables",
]
