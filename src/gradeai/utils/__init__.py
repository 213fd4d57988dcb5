"""
Utility functions for the analysis engine.
"""

from gradeai.utils.json_extractor import extract_json_from_response, close_truncated_json
from gradeai.utils.type_guards import (
    ensure_dict,
    ensure_list,
    ensure_str,
    ensure_float,
    ensure_int,
    ensure_str_list,
)

__all__ = [
    'extract_json_from_response',
    'close_truncated_json',
    'ensure_dict',
    'ensure_list',
    'ensure_str',
    'ensure_float',
    'ensure_int',
    'ensure_str_list',
]
