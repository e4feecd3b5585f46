"""Remote batch API clients, prompts and retry policy."""
