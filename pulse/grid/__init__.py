"""GRID — Composition layer: project model, musical time, arrangement length."""
