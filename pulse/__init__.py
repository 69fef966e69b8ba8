"""PULSE — offline timeline rendering for pattern-based music projects.

Layers:
  grid: project model, musical time, arrangement length
  hands: signal nodes, synth voices, insert effects
  console: mixing graph, voice pool, scheduling, rendering, WAV encoding
  api: HTTP + WebSocket surface
"""

__version__ = "0.1.0"
