"""Core framework components."""

from .value_objects import SessionId

__all__ = ["SessionId"]
