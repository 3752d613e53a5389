"""
Exception handlers for the TurnGate-AI server.
"""

from .global_handler import setup_exception_handlers

__all__ = ["setup_exception_handlers"]
