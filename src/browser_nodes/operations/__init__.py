"""
Registered node operations.

Importing this package registers every operation:
- navigation: navigate, wait_for_load_state, wait_for_selector, wait_for_timeout
- interactions: click, fill, type, press, select_option
- capture: screenshot, evaluate, accessibility_tree
- language: act, extract, observe
- system: executable_path
"""

from . import capture, interactions, language, navigation, system  # noqa: F401
from .registry import (
    OperationContext,
    OperationParams,
    OperationSpec,
    get_operation,
    list_operations,
    operation,
)

__all__ = [
    "OperationContext",
    "OperationParams",
    "OperationSpec",
    "get_operation",
    "list_operations",
    "operation",
]
