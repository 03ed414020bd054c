"""Cherryplan - plan safe cherry-picks between git branches."""

__version__ = "0.1.0"
