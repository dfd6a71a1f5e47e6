"""Core infrastructure: config, database, errors, tokens, trust and auth helpers."""
