"""PULSE Effects Engine — insert effects for mixer tracks.

Pure numpy/scipy implementation. Each effect is a node in the offline graph
and processes the full ``(frames, channels)`` buffer in one call.
Supports: 3-band EQ, compression, convolution reverb, feedback delay.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np
import structlog

from pulse.errors import GraphError
from pulse.grid.project import (
    CompressorParams,
    DelayParams,
    Effect,
    EQParams,
    ReverbParams,
)
from pulse.grid.timing import db_to_gain, subdivision_to_seconds
from pulse.hands.nodes import AudioArray, AudioNode

if TYPE_CHECKING:
    from pulse.hands.nodes import OfflineContext

logger = structlog.get_logger()

BiquadCoeffs = tuple[float, float, float, float, float]

REVERB_SEED = 1729  # Impulse responses must be identical across renders


# ── Biquad Filters ───────────────────────────────────────


def biquad_coefficients(
    filter_type: str,
    freq_hz: float,
    sr: int,
    q: float = 0.707,
    gain_db: float = 0.0,
) -> BiquadCoeffs:
    """2nd-order IIR coefficients (RBJ cookbook).

    Args:
        filter_type: 'lowpass', 'highpass', 'peak', 'lowshelf' or 'highshelf'
        freq_hz: cutoff / center / shelf frequency in Hz
        sr: sample rate
        q: resonance (0.707 = Butterworth, higher = narrower)
        gain_db: boost/cut for peak and shelf types

    Returns:
        Tuple of (b0, b1, b2, a1, a2) normalized by a0.
    """
    w0 = 2 * np.pi * freq_hz / sr
    cos_w = float(np.cos(w0))
    alpha = float(np.sin(w0)) / (2 * q)
    A = 10 ** (gain_db / 40.0)

    if filter_type == "lowpass":
        b0, b1, b2 = (1 - cos_w) / 2, 1 - cos_w, (1 - cos_w) / 2
        a0, a1, a2 = 1 + alpha, -2 * cos_w, 1 - alpha
    elif filter_type == "highpass":
        b0, b1, b2 = (1 + cos_w) / 2, -(1 + cos_w), (1 + cos_w) / 2
        a0, a1, a2 = 1 + alpha, -2 * cos_w, 1 - alpha
    elif filter_type == "peak":
        b0, b1, b2 = 1 + alpha * A, -2 * cos_w, 1 - alpha * A
        a0, a1, a2 = 1 + alpha / A, -2 * cos_w, 1 - alpha / A
    elif filter_type == "lowshelf":
        sq = 2 * np.sqrt(A) * alpha
        b0 = A * ((A + 1) - (A - 1) * cos_w + sq)
        b1 = 2 * A * ((A - 1) - (A + 1) * cos_w)
        b2 = A * ((A + 1) - (A - 1) * cos_w - sq)
        a0 = (A + 1) + (A - 1) * cos_w + sq
        a1 = -2 * ((A - 1) + (A + 1) * cos_w)
        a2 = (A + 1) + (A - 1) * cos_w - sq
    elif filter_type == "highshelf":
        sq = 2 * np.sqrt(A) * alpha
        b0 = A * ((A + 1) + (A - 1) * cos_w + sq)
        b1 = -2 * A * ((A - 1) + (A + 1) * cos_w)
        b2 = A * ((A + 1) + (A - 1) * cos_w - sq)
        a0 = (A + 1) - (A - 1) * cos_w + sq
        a1 = 2 * ((A - 1) - (A + 1) * cos_w)
        a2 = (A + 1) - (A - 1) * cos_w - sq
    else:
        msg = f"Unknown filter type: {filter_type}"
        raise ValueError(msg)

    return (
        float(b0 / a0),
        float(b1 / a0),
        float(b2 / a0),
        float(a1 / a0),
        float(a2 / a0),
    )


def apply_biquad(data: AudioArray, coeffs: BiquadCoeffs) -> AudioArray:
    """Apply a biquad along the time axis (mono or multichannel)."""
    from scipy.signal import lfilter

    b0, b1, b2, a1, a2 = coeffs
    return lfilter([b0, b1, b2], [1.0, a1, a2], data, axis=0).astype(np.float64)


# ── Effect Nodes ─────────────────────────────────────────


class EQ3(AudioNode):
    """Three-band EQ: low shelf, mid peak, high shelf. Flat bands are skipped."""

    kind = "eq"

    def __init__(self, context: OfflineContext, params: EQParams, name: str = "") -> None:
        super().__init__(context, name)
        self.params = params
        self.bands = self._design()

    def _design(self) -> list[BiquadCoeffs]:
        p = self.params
        sr = self.context.sample_rate
        nyq = sr / 2.0
        low = float(np.clip(p.low_freq, 20.0, nyq * 0.9))
        high = float(np.clip(p.high_freq, low * 1.01, nyq * 0.95))
        center = math.sqrt(low * high)
        mid_q = max(0.1, center / (high - low))

        bands: list[BiquadCoeffs] = []
        if p.low_gain != 0.0:
            bands.append(biquad_coefficients("lowshelf", low, sr, 0.707, p.low_gain))
        if p.mid_gain != 0.0:
            bands.append(biquad_coefficients("peak", center, sr, mid_q, p.mid_gain))
        if p.high_gain != 0.0:
            bands.append(biquad_coefficients("highshelf", high, sr, 0.707, p.high_gain))
        return bands

    def process(self, block: AudioArray) -> AudioArray:
        out = block
        for coeffs in self.bands:
            out = apply_biquad(out, coeffs)
        return out


class Compressor(AudioNode):
    """Feed-forward compressor with a stereo-linked peak detector."""

    kind = "compressor"

    def __init__(self, context: OfflineContext, params: CompressorParams, name: str = "") -> None:
        super().__init__(context, name)
        self.params = params

    def process(self, block: AudioArray) -> AudioArray:
        p = self.params
        sr = self.context.sample_rate
        if len(block) == 0 or p.ratio <= 1.0:
            return block * db_to_gain(p.makeup_gain)

        threshold = db_to_gain(p.threshold)
        attack_coeff = math.exp(-1.0 / (max(p.attack, 1.0 / sr) * sr))
        release_coeff = math.exp(-1.0 / (max(p.release, 1.0 / sr) * sr))

        level = np.max(np.abs(block), axis=1)
        envelope = np.empty_like(level)
        env = 0.0
        for i in range(len(level)):
            x = float(level[i])
            coeff = attack_coeff if x > env else release_coeff
            env = coeff * env + (1 - coeff) * x
            envelope[i] = env

        gain = np.ones_like(envelope)
        over = envelope > threshold
        gain[over] = (threshold / envelope[over]) ** (1 - 1 / p.ratio)
        return block * gain[:, None] * db_to_gain(p.makeup_gain)


class Reverb(AudioNode):
    """Convolution reverb over a generated noise impulse response.

    ``generate()`` must run before the node is rendered.
    """

    kind = "reverb"

    def __init__(self, context: OfflineContext, params: ReverbParams, name: str = "") -> None:
        super().__init__(context, name)
        self.params = params
        self.impulse: AudioArray | None = None

    def generate(self) -> AudioArray:
        """Build the impulse response: pre-delay gap, then decaying noise (-60 dB at ``decay``)."""
        sr = self.context.sample_rate
        channels = self.context.channels
        decay = max(self.params.decay, 0.001)
        pre = max(0, int(round(self.params.pre_delay * sr)))
        n_tail = max(1, int(round(decay * sr)))

        rng = np.random.default_rng(REVERB_SEED)
        t = np.arange(n_tail, dtype=np.float64) / sr
        curve = np.exp(-t * math.log(1000.0) / decay)
        tail = rng.uniform(-1.0, 1.0, (n_tail, channels)) * curve[:, None]
        tail /= np.sqrt(np.sum(tail**2, axis=0, keepdims=True))

        impulse = np.zeros((pre + n_tail, channels), dtype=np.float64)
        impulse[pre:] = tail
        self.impulse = impulse
        return impulse

    def process(self, block: AudioArray) -> AudioArray:
        from scipy.signal import fftconvolve

        if self.impulse is None:
            msg = f"Reverb {self.name!r} rendered before its impulse response was generated"
            raise GraphError(msg)
        wet = float(np.clip(self.params.wet, 0.0, 1.0))
        if wet == 0.0 or len(block) == 0:
            return block
        reverb = fftconvolve(block, self.impulse, mode="full", axes=0)[: len(block)]
        return block * (1 - wet) + reverb * wet

    def dispose(self) -> None:
        super().dispose()
        self.impulse = None


class FeedbackDelay(AudioNode):
    """Echo with feedback; ``sync`` notation locks the time to the tempo."""

    kind = "delay"

    def __init__(
        self,
        context: OfflineContext,
        params: DelayParams,
        bpm: float,
        name: str = "",
    ) -> None:
        super().__init__(context, name)
        self.params = params
        if params.sync:
            self.delay_time = subdivision_to_seconds(params.sync, bpm)
        else:
            self.delay_time = params.time

    def process(self, block: AudioArray) -> AudioArray:
        n = len(block)
        delay = int(round(self.delay_time * self.context.sample_rate))
        wet = float(np.clip(self.params.wet, 0.0, 1.0))
        feedback = float(np.clip(self.params.feedback, 0.0, 0.99))
        if delay < 1 or wet == 0.0:
            return block

        echoes = np.zeros_like(block)
        tap = 1
        gain = 1.0
        while tap * delay < n and gain >= 1e-4:
            offset = tap * delay
            echoes[offset:] += block[: n - offset] * gain
            gain *= feedback
            tap += 1
        return block * (1 - wet) + echoes * wet


# ── Factory ──────────────────────────────────────────────


def create_effect(context: OfflineContext, effect: Effect, bpm: float) -> AudioNode | None:
    """Instantiate an insert from its typed params; None if it cannot be built."""
    params = effect.params
    name = effect.id or effect.type
    if isinstance(params, EQParams):
        return EQ3(context, params, name=name)
    if isinstance(params, CompressorParams):
        return Compressor(context, params, name=name)
    if isinstance(params, ReverbParams):
        reverb = Reverb(context, params, name=name)
        reverb.generate()
        return reverb
    if isinstance(params, DelayParams):
        return FeedbackDelay(context, params, bpm, name=name)
    logger.warning("effects.unsupported", type=effect.type, id=effect.id)
    return None
