"""
Utility functions and helpers for Animuse.

- **logger.py**: Centralized logging configuration with colored console output,
  rotating file handlers, and per-session log aggregation. Uses prompt_toolkit
  for non-blocking console I/O.

- **retry.py**: Async retry with exponential backoff.

- **interaction_watcher.py**: Time-limited listeners for buttons on sent
  messages, with cleanup of expired buttons.
"""
