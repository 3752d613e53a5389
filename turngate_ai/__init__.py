"""TurnGate-AI: a resumable, approval-gated execution engine for tool-calling chat agents."""

__version__ = "0.1.0"
