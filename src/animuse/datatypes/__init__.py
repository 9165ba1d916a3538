"""Typed records shared across the bot: Discord IDs, AniList media and tracking rows."""
