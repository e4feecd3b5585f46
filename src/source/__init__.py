"""Source Provider: files pending documentation."""
