"""publishing/ — Commit atómico sobre la Git Data API de GitHub."""
