"""Podbridge - podcast feeds for services that don't offer them.

Synthesizes podcast RSS feeds from Mixcloud users and YouTube
channels/playlists, resolving a playable enclosure for every item.
"""

__version__ = "0.1.0"
