"""UI layer -- Rich console output, logging setup and JSON formatting."""

from .dashboard import console, print_header, print_samples, print_servers
from .logging_setup import configure_logging
from .output import all_up, create_result_json, dump_json, humanize, sample_rows

__all__ = [
    "all_up",
    "configure_logging",
    "console",
    "create_result_json",
    "dump_json",
    "humanize",
    "print_header",
    "print_samples",
    "print_servers",
    "sample_rows",
]
