"""Utility helpers for the scanner."""

from .fileio import read_bytes_limited, read_yaml_file
from .walk import glob_match, iter_candidate_files

__all__ = [
    "read_yaml_file",
    "read_bytes_limited",
    "glob_match",
    "iter_candidate_files",
]
