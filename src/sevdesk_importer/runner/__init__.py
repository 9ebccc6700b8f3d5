"""
CLI runner module.

Imports one or more local documents as draft vouchers.
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
