"""subwatch: email notifications for watchers of base pages.

A user watching ``Project/Docs`` hears about edits to ``Project/Docs/Setup``
without watching every subpage individually.
"""

__version__ = "0.1.0"
