"""PULSE arrangement length — how much timeline a render has to cover."""

from __future__ import annotations

from pulse.grid.project import Project

DEFAULT_MIN_BARS = 4


def calculate_duration_ticks(project: Project, min_bars: int = DEFAULT_MIN_BARS) -> int:
    """Timeline length in ticks: the last clip end, floored at ``min_bars`` bars.

    Every clip counts, muted or not, so muting never shortens an export.
    """
    max_tick = 0
    for clip in project.playlist.clips:
        max_tick = max(max_tick, clip.start_tick + clip.duration_tick)

    min_ticks = project.ppq * project.time_signature.numerator * min_bars
    return max(max_tick, min_ticks)
