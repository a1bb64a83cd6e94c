"""StoryWeave: weighted voting and conflict resolution for collaborative fiction."""

__version__ = "0.1.0"
