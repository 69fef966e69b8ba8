"""HANDS — Synthesis & Sound Design layer: signal nodes, voices, insert effects."""
