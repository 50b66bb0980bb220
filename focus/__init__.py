# Focus - Core Library
"""
Exports for the CLI, the HTTP surface, and other consumers.
"""

from .config import Settings, load_settings
from .task_manager import TaskManager

__all__ = [
    "Settings",
    "load_settings",
    "TaskManager",
]

__version__ = "0.1.0"
