"""
Focus - Notification Channels

Collaborators that hold and deliver scheduled reminders.
"""

from .memory import MemoryNotificationCenter

__all__ = ["MemoryNotificationCenter"]
