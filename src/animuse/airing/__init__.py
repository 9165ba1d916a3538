"""
Airing pipeline for Animuse.

- **due_set.py**: Selects the tracked titles worth polling: next airing time
  unknown, or within the 20-minute window.

- **poller.py**: Runs one poll cycle. Deduplicates and chunks the due set,
  looks each chunk up on AniList, decides per title whether to announce,
  refresh or leave it alone, and records progress.

- **dispatcher.py**: Fans one episode out to every subscribed guild with pings,
  the airing card and the "Track +" button. Guilds are isolated from each
  other's failures.

- **scheduler.py**: Runs the poll cycle after a warm-up and then on a fixed
  interval, never two cycles at once.
"""
