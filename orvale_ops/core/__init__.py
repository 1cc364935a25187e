"""
Core infrastructure: configuration, database, logging and timers.
"""
