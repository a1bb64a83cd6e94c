"""HTTP API for the StoryWeave voting engine."""
