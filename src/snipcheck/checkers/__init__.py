"""
Checker adapters: the external collaborators that validate snippet code.
"""

from .command_checker import CommandChecker
from .python_checker import PythonSyntaxChecker
from .registry import CheckerRegistry

__all__ = ["CheckerRegistry", "CommandChecker", "PythonSyntaxChecker"]
