"""Provider adapters for the remote batch API."""
