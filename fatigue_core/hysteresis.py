"""
Hysteresis Engine
Dual-threshold debounce with consecutive-frame counters. Turns a noisy
per-window probability into stable episode start / end transitions.

    Out --(p >= on, consecOnNeeded times)--> In
    In  --(p <= off, consecOffNeeded times)--> Out

Between the thresholds the pending counter decays by one instead of
resetting, so a half-finished transition is not wiped by one ambiguous frame.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .events import DisplayState


@dataclass(frozen=True)
class HysteresisConfig:
    on_threshold: float = 0.70
    off_threshold: float = 0.40
    consec_on_needed: int = 2
    consec_off_needed: int = 2

    def __post_init__(self):
        if not 0.0 <= self.off_threshold < self.on_threshold <= 1.0:
            raise ValueError(
                f"Thresholds must satisfy 0 <= off < on <= 1 "
                f"(on={self.on_threshold}, off={self.off_threshold})"
            )
        if self.consec_on_needed < 1 or self.consec_off_needed < 1:
            raise ValueError("Consecutive frame requirements must be >= 1")

    def to_dict(self) -> dict:
        return {
            "on_threshold": self.on_threshold,
            "off_threshold": self.off_threshold,
            "consec_on_needed": self.consec_on_needed,
            "consec_off_needed": self.consec_off_needed,
        }


@dataclass
class HysteresisState:
    consecutive_on: int = 0
    consecutive_off: int = 0
    episode_active: bool = False


class Transition(str, Enum):
    EPISODE_START = "episode_start"
    EPISODE_END = "episode_end"


class HysteresisEngine:
    """Feed probabilities one at a time through ``step()``."""

    def __init__(self, config: Optional[HysteresisConfig] = None):
        self.config = config or HysteresisConfig()
        self.state = HysteresisState()

    def reset(self):
        self.state = HysteresisState()

    @property
    def active(self) -> bool:
        return self.state.episode_active

    @property
    def display_state(self) -> DisplayState:
        if self.state.episode_active:
            return DisplayState.FATIGUED
        if self.state.consecutive_on > 0:
            return DisplayState.DROWSY
        return DisplayState.AWAKE

    def step(self, p: float) -> Optional[Transition]:
        """Advance one frame. Returns the transition it caused, if any."""
        cfg = self.config
        s = self.state

        if not s.episode_active:
            if p >= cfg.on_threshold:
                s.consecutive_on += 1
                s.consecutive_off = 0
                if s.consecutive_on >= cfg.consec_on_needed:
                    s.episode_active = True
                    s.consecutive_on = 0
                    return Transition.EPISODE_START
            elif p <= cfg.off_threshold:
                s.consecutive_on = 0
                s.consecutive_off = 0
            else:
                s.consecutive_on = max(0, s.consecutive_on - 1)
                s.consecutive_off = 0
            return None

        if p <= cfg.off_threshold:
            s.consecutive_off += 1
            s.consecutive_on = 0
            if s.consecutive_off >= cfg.consec_off_needed:
                s.episode_active = False
                s.consecutive_off = 0
                return Transition.EPISODE_END
        elif p >= cfg.on_threshold:
            # reaffirmed
            s.consecutive_on = 0
            s.consecutive_off = 0
        else:
            s.consecutive_off = max(0, s.consecutive_off - 1)
            s.consecutive_on = 0
        return None
