"""
Configuration management for Animuse.

- **app_configuration.py**: YAML configuration loader for global settings.
  Provides the database path and the airing settings (poll interval, warm-up,
  due window, batch size, button lifetime, AniList endpoint and retries).
  Falls back to defaults on missing or malformed config files.
"""
