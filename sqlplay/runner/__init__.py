"""
Code Execution Unit: runs playground files and streams their events.
"""

from .executor import TOOLKIT_BINDING, ExecutionContext, PlaygroundRunner, execute_step
from .modules import RESERVED_MODULES, load_schema
from .toolkit import RandomGenerators, Toolkit, render_toolkit_stub

__all__ = [
    "ExecutionContext",
    "PlaygroundRunner",
    "RESERVED_MODULES",
    "RandomGenerators",
    "TOOLKIT_BINDING",
    "Toolkit",
    "execute_step",
    "load_schema",
    "render_toolkit_stub",
]
