"""PULSE exception hierarchy."""

from __future__ import annotations


class PulseError(Exception):
    """Base class for every error raised by the engine."""


class GraphError(PulseError):
    """Illegal signal-graph operation (cross-context link, disposed node, cycle)."""


class BackendUnavailableError(PulseError):
    """The audio backend cannot run an offline pass in this environment."""


class RenderError(PulseError):
    """A render attempt failed; ``phase`` names the stage that raised."""

    def __init__(self, phase: str, message: str) -> None:
        super().__init__(message)
        self.phase = phase
        self.message = message

    def __str__(self) -> str:
        return f"[{self.phase}] {self.message}"
