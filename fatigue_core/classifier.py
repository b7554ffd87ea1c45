"""
Classifier Boundary
The model behind ClassifierPort is opaque: it takes the normalized features
in FEATURE_ORDER and answers with p(fatigued) and/or a discrete label.
"""

import json
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import numpy as np

from .errors import ClassificationError, ClassifierLoadError
from .features import FEATURE_ORDER

logger = logging.getLogger("fatiguewatch.classifier")


class FatigueLabel(str, Enum):
    AWAKE = "awake"
    FATIGUED = "fatigued"


@dataclass(frozen=True)
class ClassificationResult:
    """
    Classifier answer for one window.

    When the model exposes no probability, ``label`` is authoritative and
    ``probability`` is reported as 0.
    """
    probability: float
    label: FatigueLabel
    probability_available: bool = True

    @property
    def hysteresis_input(self) -> float:
        if self.probability_available:
            return self.probability
        return 1.0 if self.label is FatigueLabel.FATIGUED else 0.0

    def to_dict(self) -> dict:
        return {
            "probability": round(self.probability, 4),
            "label": self.label.value,
            "probability_available": self.probability_available,
        }


class ClassifierPort(ABC):
    """Anything that can score one ordered, normalized feature vector"""

    @abstractmethod
    def classify(self, features: np.ndarray) -> ClassificationResult:
        """Raise ClassificationError on malformed input or model failure."""


# ============================================================================
# RAW OUTPUT INTERPRETATION
# ============================================================================

def _to_float(value: Any) -> Optional[float]:
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


def _parse_label(label: Any, fatigued_class: int) -> Optional[FatigueLabel]:
    if label is None:
        return None
    if isinstance(label, FatigueLabel):
        return label
    if isinstance(label, str):
        text = label.strip().lower()
        if text in ("fatigued", "fatigue"):
            return FatigueLabel.FATIGUED
        if text in ("awake", "alert"):
            return FatigueLabel.AWAKE
    index = _to_float(label)
    if index is None:
        return None
    return FatigueLabel.FATIGUED if int(index) == fatigued_class else FatigueLabel.AWAKE


def interpret_model_output(
    probs: Optional[Mapping[Any, Any]],
    label: Any = None,
    fatigued_class: int = 0,
    decision_threshold: float = 0.5,
) -> ClassificationResult:
    """
    Resolve a raw model response into a ClassificationResult.

    ``probs`` maps class index (int or str key) to probability. p(fatigued) is
    read directly, or as the complement of the other class when only that one
    is present. With no probability the label decides.
    """
    p: Optional[float] = None
    if probs:
        other = 1 - fatigued_class
        for key in (fatigued_class, str(fatigued_class)):
            if key in probs:
                p = _to_float(probs[key])
                break
        if p is None:
            for key in (other, str(other)):
                if key in probs:
                    q = _to_float(probs[key])
                    p = None if q is None else 1.0 - q
                    break

    if p is not None and p >= 0.0:
        p = min(max(p, 0.0), 1.0)
        resolved = FatigueLabel.FATIGUED if p >= decision_threshold else FatigueLabel.AWAKE
        return ClassificationResult(probability=p, label=resolved)

    parsed = _parse_label(label, fatigued_class)
    if parsed is None:
        raise ClassificationError("Model returned neither a probability nor a usable label")
    return ClassificationResult(probability=0.0, label=parsed, probability_available=False)


# ============================================================================
# BUNDLED MODEL
# ============================================================================

class LogisticFatigueClassifier(ClassifierPort):
    """
    Logistic regression over the 12 lean features.

    Model file::

        {"features": [...FEATURE_ORDER...], "coef": [...], "intercept": b,
         "fatigued_class": 0}

    ``coef`` is oriented towards the positive class (index 1), as exported by
    scikit-learn; p(fatigued) is resolved from it via ``fatigued_class``.
    """

    def __init__(self, coef, intercept: float, fatigued_class: int = 0, decision_threshold: float = 0.5):
        self.coef = np.asarray(coef, dtype=np.float64)
        if self.coef.shape != (len(FEATURE_ORDER),):
            raise ClassifierLoadError(
                f"Expected {len(FEATURE_ORDER)} coefficients, got shape {self.coef.shape}"
            )
        self.intercept = float(intercept)
        if fatigued_class not in (0, 1):
            raise ClassifierLoadError(f"fatigued_class must be 0 or 1, got {fatigued_class}")
        self.fatigued_class = fatigued_class
        self.decision_threshold = decision_threshold

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "LogisticFatigueClassifier":
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                export = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            raise ClassifierLoadError(f"Cannot load fatigue model from {path}: {e}") from e
        if not isinstance(export, dict):
            raise ClassifierLoadError(f"Fatigue model must be a JSON object: {path}")

        features = export.get("features")
        if list(features or []) != list(FEATURE_ORDER):
            raise ClassifierLoadError(
                f"Model feature order {features} does not match {list(FEATURE_ORDER)}"
            )
        try:
            model = cls(
                coef=export["coef"],
                intercept=export.get("intercept", 0.0),
                fatigued_class=int(export.get("fatigued_class", 0)),
                decision_threshold=float(export.get("decision_threshold", 0.5)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ClassifierLoadError(f"Malformed fatigue model {path}: {e}") from e

        logger.info("Fatigue model loaded from %s (fatigued_class=%d)", path, model.fatigued_class)
        return model

    def classify(self, features: np.ndarray) -> ClassificationResult:
        x = np.asarray(features, dtype=np.float64)
        if x.shape != self.coef.shape:
            raise ClassificationError(f"Expected {self.coef.shape[0]} features, got shape {x.shape}")
        if not np.all(np.isfinite(x)):
            raise ClassificationError("Feature vector contains non-finite values")

        z = float(np.dot(self.coef, x) + self.intercept)
        # numerically stable sigmoid
        if z >= 0:
            p1 = 1.0 / (1.0 + math.exp(-z))
        else:
            ez = math.exp(z)
            p1 = ez / (1.0 + ez)
        return interpret_model_output(
            {0: 1.0 - p1, 1: p1},
            fatigued_class=self.fatigued_class,
            decision_threshold=self.decision_threshold,
        )
