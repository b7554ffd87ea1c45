"""
Feature Normalization
Z-scores raw features with per-feature (mean, std) statistics captured at
training time.
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, NamedTuple, Optional, Tuple, Union

logger = logging.getLogger("fatiguewatch.normalizer")

EPSILON = 1e-6


class FeatureStat(NamedTuple):
    mean: float
    std: float


class NormalizationStats(Mapping[str, FeatureStat]):
    """Read-only feature name -> (mean, std) table. std is floored at EPSILON."""

    def __init__(self, stats: Optional[Mapping[str, Mapping[str, float]]] = None):
        table: Dict[str, FeatureStat] = {}
        for name, entry in (stats or {}).items():
            if isinstance(entry, (tuple, list)):
                mean, std = entry
            else:
                mean = entry.get("mean", 0.0)
                std = entry.get("std", 1.0)
            table[name] = FeatureStat(float(mean), max(float(std), EPSILON))
        self._table = MappingProxyType(table)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "NormalizationStats":
        """
        Load ``{"feature": {"mean": m, "std": s}, ...}``.
        A missing file yields empty stats (every feature passes through).
        """
        path = Path(path)
        if not path.exists():
            logger.warning("Feature stats file not found: %s (features pass through unnormalized)", path)
            return cls()
        with open(path, "r", encoding="utf-8") as fh:
            raw = json.load(fh)
        if not isinstance(raw, dict):
            raise ValueError(f"Feature stats must be a JSON object: {path}")
        stats = cls(raw)
        logger.info("Loaded normalization stats for %d features from %s", len(stats), path)
        return stats

    def __getitem__(self, name: str) -> FeatureStat:
        return self._table[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)


def normalize(features: Mapping[str, float], stats: Mapping[str, Tuple[float, float]]) -> Dict[str, float]:
    """
    ``(value - mean) / max(std, EPSILON)`` for every feature with stats;
    features without stats pass through unchanged. ``stats`` may be a
    NormalizationStats or any mapping of name -> (mean, std) pairs.
    """
    out: Dict[str, float] = {}
    for name, value in features.items():
        stat = stats.get(name)
        if stat is None:
            out[name] = value
            continue
        mean, std = stat
        out[name] = (value - mean) / max(std, EPSILON)
    return out
