"""View Domain Object - Black-Litterman investor opinion.

A view is a (possibly long/short) portfolio of assets with a forecast mean
return and a confidence. The confidence is one of:

- BalancedConfidence: the model's global confidence times the model variance
- ScaledConfidence: a per-view scale times the model variance
- ExplicitVariance: the view's return variance given directly
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Union

import numpy as np


@dataclass(frozen=True)
class BalancedConfidence:
    """Defer to the model's global confidence."""

    def resolve(self, model_variance: float, global_confidence: float) -> float:
        return model_variance * global_confidence


@dataclass(frozen=True)
class ScaledConfidence:
    """Model variance scaled by a per-view factor.

    Attributes:
        scale: Multiplier applied to the model variance (must be > 0)
    """

    scale: float

    def __post_init__(self) -> None:
        if not self.scale > 0:
            raise ValueError(f"scale must be positive, got {self.scale}")

    def resolve(self, model_variance: float, global_confidence: float) -> float:
        return model_variance * self.scale


@dataclass(frozen=True)
class ExplicitVariance:
    """Return variance given directly.

    Attributes:
        variance: View return variance (must be >= 0)
    """

    variance: float

    def __post_init__(self) -> None:
        if math.isnan(self.variance) or self.variance < 0:
            raise ValueError(f"variance must be >= 0, got {self.variance}")

    def resolve(self, model_variance: float, global_confidence: float) -> float:
        return self.variance


ViewConfidence = Union[BalancedConfidence, ScaledConfidence, ExplicitVariance]


@dataclass(frozen=True)
class View:
    """Investor view.

    Attributes:
        weights: Signed exposure per asset
        mean_return: Forecast return of the view portfolio
        confidence: How the view's return variance is determined
    """

    weights: tuple[float, ...]
    mean_return: float = 0.0
    confidence: ViewConfidence = field(default_factory=BalancedConfidence)

    def __post_init__(self) -> None:
        """Normalise weights to a tuple of floats."""
        weights = tuple(float(weight) for weight in np.ravel(self.weights))
        if not weights:
            raise ValueError("View requires at least one asset weight")
        object.__setattr__(self, "weights", weights)

    @classmethod
    def balanced(cls, weights: Sequence[float], mean_return: float) -> "View":
        return cls(tuple(weights), mean_return, BalancedConfidence())

    @classmethod
    def scaled(cls, weights: Sequence[float], mean_return: float, scale: float) -> "View":
        return cls(tuple(weights), mean_return, ScaledConfidence(scale))

    @classmethod
    def explicit(cls, weights: Sequence[float], mean_return: float, variance: float) -> "View":
        return cls(tuple(weights), mean_return, ExplicitVariance(variance))

    def size(self) -> int:
        return len(self.weights)

    def return_variance(self, covariances: np.ndarray, global_confidence: float) -> float:
        """Resolve the view's return variance.

        Args:
            covariances: Model covariance matrix
            global_confidence: Model-wide confidence ("weight on views")

        Returns:
            Explicit variance, or the view portfolio's model variance scaled by
            the per-view scale, or by the global confidence
        """
        if isinstance(self.confidence, ExplicitVariance):
            return self.confidence.variance
        weights = np.array(self.weights)
        model_variance = float(weights @ np.asarray(covariances, dtype=float) @ weights)
        return self.confidence.resolve(model_variance, global_confidence)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {
            "weights": list(self.weights),
            "mean_return": self.mean_return,
        }
        if isinstance(self.confidence, ScaledConfidence):
            result["scale"] = self.confidence.scale
        elif isinstance(self.confidence, ExplicitVariance):
            result["variance"] = self.confidence.variance
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "View":
        """Create View from dictionary.

        Recognises optional ``variance``, ``standard_deviation`` or ``scale``
        keys (in that order of precedence).
        """
        weights = tuple(float(weight) for weight in data["weights"])
        mean_return = float(data.get("mean_return", 0.0))
        if data.get("variance") is not None:
            confidence: ViewConfidence = ExplicitVariance(float(data["variance"]))
        elif data.get("standard_deviation") is not None:
            deviation = float(data["standard_deviation"])
            confidence = ExplicitVariance(deviation * deviation)
        elif data.get("scale") is not None:
            confidence = ScaledConfidence(float(data["scale"]))
        else:
            confidence = BalancedConfidence()
        return cls(weights, mean_return, confidence)
