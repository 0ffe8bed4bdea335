"""Run duplicacy backup, copy, prune and check operations with logging, log rotation and pluggable notifiers."""

__version__ = "1.0.0"