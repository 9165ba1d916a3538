"""
User interface components for Animuse.

- **airing_card.py**: Renders the airing notification card with Pillow from the
  title's banner, cover art and colour.
- **track_list_ui.py**: The ``/track list`` panel with its untrack dropdown.
"""
