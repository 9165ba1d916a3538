"""
Animuse - Anime Airing Notifications for Discord

Animuse lets server members track airing anime and announces new episodes in
each server's airing channel.

Core Components:

- **Airing pipeline**: A scheduler wakes every ten minutes, selects the tracked
  titles whose next episode is unknown or close, looks them up on AniList in
  batches of fifty and announces each new episode exactly once
- **Notifications**: One message per guild with subscriber pings, a rendered
  airing card and a short-lived "Track +" button
- **Tracking**: Per-user, per-guild subscriptions and per-title polling state
  persisted in SQLite

Usage:
    from animuse.main import main
    main()  # Starts the bot
"""
