"""Cross-cutting utilities shared by the engine and the server."""
