"""
IO module for reading, checking and writing CellML documents.
"""

from cellcomposer.io.cellml import (
    analyse_model,
    is_cellml,
    parse_model,
    print_model,
    read_sources,
    resolve_and_flatten,
    validate_model,
)

__all__ = [
    "analyse_model",
    "is_cellml",
    "parse_model",
    "print_model",
    "read_sources",
    "resolve_and_flatten",
    "validate_model",
]
