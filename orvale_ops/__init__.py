"""
Orvale helpdesk background operations: backups, chat retention, presence
and ticket numbering.
"""

__version__ = "1.0.0"
