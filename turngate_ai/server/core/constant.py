"""Server-wide constants."""

PROJECT_NAME = "TurnGate-AI"
API_V1_STR = "/api/v1"
