"""
Services wrapping the repositories with the bot's error policy.

- **tracking_store.py**: Polling state and subscriptions for the airing pipeline.
- **guild_config.py**: Cached per-guild airing channel.
"""
