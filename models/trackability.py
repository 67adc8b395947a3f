from __future__ import annotations
from dataclasses import dataclass, field
from typing import Tuple

LABEL_STRONG = "Strong for tracking."
LABEL_ACCEPTABLE = "Acceptable, but can be improved."
LABEL_WEAK = "Weak. Fix before printing."
LABEL_VERY_WEAK = "Very weak. Likely to fail tracking."

SUGGEST_RESOLUTION = "Low resolution. Use a higher resolution artwork (at least 1200px on the shorter side)."
SUGGEST_SHARPNESS = "Artwork looks soft. Use a sharper image and avoid motion blur."
SUGGEST_CONTRAST = "Low contrast. Increase contrast or add clearer edges."
SUGGEST_FEATURES = "Not enough features for tracking. Add texture, patterns, or detailed elements (avoid large plain areas)."
SUGGEST_FLAT = "Large flat areas detected. Tracking works better with unique corners and busy regions."


@dataclass(frozen=True)
class TrackabilityConfig:
    """
    Calibration of the trackability scorer.

    Normalization references set the score scale; suggestion thresholds set
    how eagerly advice is given. The two are calibrated separately.
    """
    # ── Working size ─────────────────────────────────────────────────
    max_side: int = 900
    min_side: int = 3

    # ── Metric extraction ────────────────────────────────────────────
    edge_threshold: float = 35.0
    flat_threshold: float = 10.0
    flat_sample_step: int = 6

    # ── Normalization references (metric value that maps to 100) ────
    sharpness_ref: float = 1200.0
    contrast_ref: float = 55.0
    feature_ref: float = 0.18
    resolution_ref: float = 800.0

    # ── Composite weights (sum to 1) ─────────────────────────────────
    sharpness_weight: float = 0.34
    contrast_weight: float = 0.22
    feature_weight: float = 0.30
    resolution_weight: float = 0.14

    # ── Suggestion thresholds ────────────────────────────────────────
    min_resolution: int = 800
    min_sharpness: float = 400.0
    min_contrast: float = 25.0
    min_feature_density: float = 0.06
    max_flat_ratio: float = 0.55

    # ── Label bands (inclusive lower bounds) ─────────────────────────
    strong_score: int = 78
    acceptable_score: int = 58
    gate_score: int = 40


@dataclass(frozen=True)
class TrackabilityMetrics:
    """Raw metric values behind a score, kept for diagnostics."""
    sharpness: float
    contrast_std: float
    feature_density: float
    min_dim: int
    flat_ratio: float

    def to_dict(self) -> dict:
        return {
            "sharpness": float(self.sharpness),
            "contrastStd": float(self.contrast_std),
            "featureDensity": float(self.feature_density),
            "minDim": int(self.min_dim),
            "flatRatio": float(self.flat_ratio),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TrackabilityMetrics":
        return cls(
            sharpness=float(data["sharpness"]),
            contrast_std=float(data["contrastStd"]),
            feature_density=float(data["featureDensity"]),
            min_dim=int(data["minDim"]),
            flat_ratio=float(data["flatRatio"]),
        )


@dataclass(frozen=True)
class AnalysisResult:
    """
    Outcome of one trackability analysis.
    Owned by the caller once returned; the scorer keeps no reference to it.
    """
    score: int  # 0-100
    label: str
    suggestions: Tuple[str, ...] = field(default_factory=tuple)
    debug: TrackabilityMetrics | None = None
    gate_score: int = 40

    @property
    def passes_gate(self) -> bool:
        return self.score >= self.gate_score

    def to_record(self) -> dict:
        """Persisted form: score, label and raw metrics."""
        return {
            "score": self.score,
            "label": self.label,
            "debug": self.debug.to_dict() if self.debug else None,
        }
