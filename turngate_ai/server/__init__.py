"""FastAPI server exposing conversations and their streamed turns over SSE."""
