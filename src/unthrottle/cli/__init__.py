#!/usr/bin/env python3
"""
vzdump-unthrottle CLI package.
"""

from .parsers import build_parser, hook_main, main
from .utils import console

__all__ = ["build_parser", "hook_main", "main", "console"]
