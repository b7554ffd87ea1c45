"""
Signal Simulator
Synthetic per-channel samples for demonstration runs without a wearable.
Feeds the session like a real sensor would; the classifier and hysteresis
engine never know the difference.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import numpy as np

from .features import CHANNELS


@dataclass(frozen=True)
class ChannelProfile:
    """Random-walk parameters for one channel"""
    center: float
    step: float
    low: float
    high: float


AWAKE_PROFILES: Dict[str, ChannelProfile] = {
    "ECG": ChannelProfile(center=0.5, step=0.05, low=0.0, high=1.0),
    "HR": ChannelProfile(center=72.0, step=0.5, low=50.0, high=110.0),
}
EEG_AWAKE = ChannelProfile(center=0.0, step=2.0, low=-40.0, high=40.0)

FATIGUED_PROFILES: Dict[str, ChannelProfile] = {
    "ECG": ChannelProfile(center=0.4, step=0.08, low=0.0, high=1.0),
    "HR": ChannelProfile(center=58.0, step=0.8, low=45.0, high=100.0),
}
EEG_FATIGUED = ChannelProfile(center=0.0, step=6.0, low=-90.0, high=90.0)


class SignalSimulator:
    """
    Bounded random walk per channel with a slow pull back towards its centre.
    ``fatigued=True`` widens EEG swings and lowers heart rate.
    """

    def __init__(
        self,
        channels: Iterable[str] = CHANNELS,
        sample_rate: float = 10.0,
        fatigued: bool = False,
        seed: Optional[int] = None,
    ):
        self.channels: Tuple[str, ...] = tuple(channels)
        self.sample_rate = sample_rate
        self.fatigued = fatigued
        self._rng = np.random.default_rng(seed)
        self._values: Dict[str, float] = {ch: self._profile(ch).center for ch in self.channels}
        self._t = 0.0

    def _profile(self, channel: str) -> ChannelProfile:
        if self.fatigued:
            return FATIGUED_PROFILES.get(channel, EEG_FATIGUED)
        return AWAKE_PROFILES.get(channel, EEG_AWAKE)

    def set_fatigued(self, fatigued: bool):
        self.fatigued = fatigued

    def next_samples(self) -> List[Tuple[str, float, float]]:
        """One sample per channel: ``(channel, value, timestamp)``."""
        self._t += 1.0 / self.sample_rate
        out = []
        for channel in self.channels:
            profile = self._profile(channel)
            value = self._values[channel]
            value += self._rng.uniform(-profile.step, profile.step)
            value += 0.05 * (profile.center - value)
            value = float(np.clip(value, profile.low, profile.high))
            self._values[channel] = value
            out.append((channel, value, self._t))
        return out

    def __iter__(self) -> Iterator[Tuple[str, float, float]]:
        while True:
            yield from self.next_samples()
