"""CONSOLE — Mixing & Rendering layer.

Builds the per-render mixing graph and voice pool, schedules pattern
content, runs the offline pass and encodes the result as WAV.
"""
