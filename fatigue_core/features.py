"""
Feature Windowing
Accumulates per-channel samples into sliding windows and reduces each full
window to summary statistics (mean / std / max / min per channel).
"""

import logging
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, Iterator, Mapping, Optional, Set, Tuple

import numpy as np

from .errors import FeatureSchemaError

logger = logging.getLogger("fatiguewatch.features")


# ============================================================================
# FEATURE SCHEMA
# ============================================================================

# EEG electrodes plus the cardiac proxies streamed from the wearable
CHANNELS: Tuple[str, ...] = ("C3", "Cz", "P3", "P4", "Poz", "F3", "ECG", "HR")

STAT_NAMES: Tuple[str, ...] = ("mean", "std", "max", "min")

# Order expected by the classifier. Do not reorder.
FEATURE_ORDER: Tuple[str, ...] = (
    "C3_std", "ECG_std", "C3_max", "C3_min", "Cz_std", "P3_std",
    "P4_std", "P3_min", "Poz_min", "F3_max", "ECG_max", "HR_mean",
)

DEFAULT_WINDOW_SIZE = 100


class FeatureVector:
    """
    Fixed-schema feature record.

    Holds exactly the names in ``FEATURE_ORDER``; completeness and finiteness
    are checked at construction so the classifier never sees defaulted zeros.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, float]):
        missing = [name for name in FEATURE_ORDER if name not in values]
        if missing:
            raise FeatureSchemaError(f"Missing features: {', '.join(missing)}")
        extra = sorted(set(values) - set(FEATURE_ORDER))
        if extra:
            raise FeatureSchemaError(f"Unknown features: {', '.join(extra)}")

        clean: Dict[str, float] = {}
        for name in FEATURE_ORDER:
            value = float(values[name])
            if not math.isfinite(value):
                raise FeatureSchemaError(f"Feature {name} is not finite: {value}")
            clean[name] = value
        self._values = clean

    @classmethod
    def select(cls, features: Mapping[str, float]) -> "FeatureVector":
        """Build a vector from a larger feature mapping, keeping only the schema names"""
        return cls({name: features[name] for name in FEATURE_ORDER if name in features})

    def __getitem__(self, name: str) -> float:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(FEATURE_ORDER)

    def __len__(self) -> int:
        return len(FEATURE_ORDER)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeatureVector):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v:.4g}" for k, v in self._values.items())
        return f"FeatureVector({inner})"

    def as_dict(self) -> Dict[str, float]:
        return dict(self._values)

    def as_array(self) -> np.ndarray:
        return np.array([self._values[name] for name in FEATURE_ORDER], dtype=np.float64)


# ============================================================================
# WINDOW SUMMARY
# ============================================================================

@dataclass(frozen=True)
class ChannelSummary:
    """Summary statistics of one channel over one window"""
    mean: float = 0.0
    std: float = 0.0
    max: float = 0.0
    min: float = 0.0

    @classmethod
    def from_samples(cls, samples: Iterable[float]) -> "ChannelSummary":
        arr = np.fromiter(samples, dtype=np.float64)
        if arr.size == 0:
            return cls()
        # Bessel-corrected; a single sample has no spread
        std = float(np.std(arr, ddof=1)) if arr.size > 1 else 0.0
        return cls(
            mean=float(np.mean(arr)),
            std=std,
            max=float(np.max(arr)),
            min=float(np.min(arr)),
        )


@dataclass(frozen=True)
class FeatureWindow:
    """One completed window across all tracked channels"""
    summaries: Dict[str, ChannelSummary]
    degraded_channels: Tuple[str, ...] = ()
    timestamp: float = 0.0

    def features(self) -> Dict[str, float]:
        """Flatten into ``<channel>_<stat>`` names"""
        out: Dict[str, float] = {}
        for channel, summary in self.summaries.items():
            for stat in STAT_NAMES:
                out[f"{channel}_{stat}"] = getattr(summary, stat)
        return out

    def feature_vector(self) -> FeatureVector:
        return FeatureVector.select(self.features())


# ============================================================================
# WINDOWER
# ============================================================================

class FeatureWindower:
    """
    Sliding-window accumulator.

    ``append()`` takes one sample per call. ``try_extract_window()`` returns a
    ``FeatureWindow`` once every present channel holds ``window_size`` samples,
    otherwise ``None``. After an extraction each buffer keeps its newest
    ``window_size - 1`` samples, so consecutive windows overlap by N-1.

    A channel is silent once ``silence_horizon`` samples (``window_size`` per
    tracked channel) have arrived on other channels since its own last sample,
    or since reset for a channel that never reported. With ``stale_after``
    set, a channel whose newest sample lags the newest sample on any channel
    by more than that many seconds is silent too. Silent channels contribute
    an all-zero summary and do not hold back readiness. Until then a channel
    that has not reported yet holds the first window back, so a batch sent
    channel by channel does not yield a window of mostly zeros.
    """

    def __init__(
        self,
        window_size: int = DEFAULT_WINDOW_SIZE,
        channels: Iterable[str] = CHANNELS,
        stale_after: Optional[float] = None,
    ):
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        self.window_size = window_size
        self.channels: Tuple[str, ...] = tuple(channels)
        self.stale_after = stale_after

        self._buffers: Dict[str, Deque[float]] = {
            ch: deque(maxlen=window_size) for ch in self.channels
        }
        self._last_seen: Dict[str, float] = {}
        self._last_index: Dict[str, int] = {}
        self._appended = 0
        self._newest: Optional[float] = None
        self._degraded: Set[str] = set()

    def reset(self):
        for buffer in self._buffers.values():
            buffer.clear()
        self._last_seen.clear()
        self._last_index.clear()
        self._appended = 0
        self._newest = None
        self._degraded.clear()

    def append(self, channel: str, sample: float, timestamp: Optional[float] = None) -> bool:
        """Buffer one sample. Returns False for channels that are not tracked."""
        buffer = self._buffers.get(channel)
        if buffer is None:
            logger.debug("Ignoring sample for untracked channel %r", channel)
            return False

        ts = time.time() if timestamp is None else float(timestamp)
        buffer.append(float(sample))
        self._last_seen[channel] = ts
        self._appended += 1
        self._last_index[channel] = self._appended
        if self._newest is None or ts > self._newest:
            self._newest = ts

        if channel in self._degraded:
            self._degraded.discard(channel)
            logger.info("Channel %s resumed", channel)
        return True

    def buffered(self, channel: str) -> int:
        return len(self._buffers[channel])

    @property
    def silence_horizon(self) -> int:
        return self.window_size * len(self.channels)

    def _is_present(self, channel: str) -> bool:
        if self._appended - self._last_index.get(channel, 0) >= self.silence_horizon:
            return False
        last = self._last_seen.get(channel)
        if last is None:
            # not reported yet, still inside the warm-up horizon
            return True
        if self.stale_after is not None and self._newest is not None:
            return (self._newest - last) <= self.stale_after
        return True

    def is_ready(self) -> bool:
        present = [ch for ch in self.channels if self._is_present(ch)]
        if not present:
            return False
        return all(len(self._buffers[ch]) >= self.window_size for ch in present)

    def try_extract_window(self) -> Optional[FeatureWindow]:
        if not self.is_ready():
            return None

        summaries: Dict[str, ChannelSummary] = {}
        degraded = []
        for channel in self.channels:
            if self._is_present(channel):
                buffer = self._buffers[channel]
                summaries[channel] = ChannelSummary.from_samples(buffer)
                # slide by one: keep the newest N-1
                buffer.popleft()
            else:
                summaries[channel] = ChannelSummary()
                degraded.append(channel)
                if channel not in self._degraded:
                    self._degraded.add(channel)
                    logger.warning("Channel %s has no recent samples; using zeros", channel)

        return FeatureWindow(
            summaries=summaries,
            degraded_channels=tuple(degraded),
            timestamp=self._newest or time.time(),
        )
