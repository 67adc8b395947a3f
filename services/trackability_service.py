"""
Artwork trackability scoring.

Estimates how well a printed image will work as a natural-feature AR
tracking target. The score combines four cheap statistics computed on a
grayscale working copy: Laplacian variance (sharpness), luminance standard
deviation (contrast), the share of strong-gradient pixels (feature density)
and the source resolution. A flatness estimate feeds the advice only.
"""
from __future__ import annotations

import logging
import math
import os
from dataclasses import replace
from typing import List, Tuple

import numpy as np
from dotenv import load_dotenv

from models.image import Image
from models.trackability import (
    AnalysisResult,
    TrackabilityConfig,
    TrackabilityMetrics,
    LABEL_STRONG,
    LABEL_ACCEPTABLE,
    LABEL_WEAK,
    LABEL_VERY_WEAK,
    SUGGEST_RESOLUTION,
    SUGGEST_SHARPNESS,
    SUGGEST_CONTRAST,
    SUGGEST_FEATURES,
    SUGGEST_FLAT,
)
from services.image_service import ImageService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class InvalidInputError(ValueError):
    """Raised for images too small to yield any interior pixels."""


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def contrast_stats(gray: np.ndarray) -> Tuple[float, float]:
    """Mean and population standard deviation of the buffer."""
    g = gray.astype(np.float64)
    mean = float(g.mean())
    std = float(np.sqrt(np.mean((g - mean) ** 2)))
    return mean, std


def _interior_taps(gray: np.ndarray):
    """Center and 4-neighbour views over interior pixels (1-px border excluded)."""
    g = gray.astype(np.float64)
    center = g[1:-1, 1:-1]
    up = g[:-2, 1:-1]
    down = g[2:, 1:-1]
    left = g[1:-1, :-2]
    right = g[1:-1, 2:]
    return center, up, down, left, right


def laplacian_variance(gray: np.ndarray) -> float:
    center, up, down, left, right = _interior_taps(gray)
    lap = (up + down + left + right) - 4.0 * center
    lap_mean = lap.mean()
    variance = float(np.mean(lap * lap) - lap_mean * lap_mean)
    return max(0.0, variance)


def feature_density(gray: np.ndarray, edge_threshold: float) -> float:
    """Share of interior pixels whose L1 gradient magnitude exceeds the threshold."""
    _, up, down, left, right = _interior_taps(gray)
    magnitude = np.abs(right - left) + np.abs(down - up)
    return float(np.count_nonzero(magnitude > edge_threshold)) / magnitude.size


def flat_ratio(gray: np.ndarray, mean: float, flat_threshold: float, step: int) -> float:
    """Share of strided samples (every *step*-th linear index) close to the mean."""
    samples = gray.ravel()[::step].astype(np.float64)
    flat = np.count_nonzero(np.abs(samples - mean) < flat_threshold)
    return float(flat) / math.ceil(gray.size / step)


def normalized_scores(metrics: TrackabilityMetrics, config: TrackabilityConfig) -> dict:
    """Each metric mapped linearly onto [0, 100] against its reference."""
    return {
        "sharpness": _clamp01(metrics.sharpness / config.sharpness_ref) * 100,
        "contrast": _clamp01(metrics.contrast_std / config.contrast_ref) * 100,
        "features": _clamp01(metrics.feature_density / config.feature_ref) * 100,
        "resolution": _clamp01(metrics.min_dim / config.resolution_ref) * 100,
    }


def composite_score(metrics: TrackabilityMetrics, config: TrackabilityConfig) -> int:
    parts = normalized_scores(metrics, config)
    raw = (
        config.sharpness_weight * parts["sharpness"]
        + config.contrast_weight * parts["contrast"]
        + config.feature_weight * parts["features"]
        + config.resolution_weight * parts["resolution"]
    )
    return _round_half_up(max(0.0, min(100.0, raw)))


def label_for_score(score: int, config: TrackabilityConfig = TrackabilityConfig()) -> str:
    if score >= config.strong_score:
        return LABEL_STRONG
    if score >= config.acceptable_score:
        return LABEL_ACCEPTABLE
    if score >= config.gate_score:
        return LABEL_WEAK
    return LABEL_VERY_WEAK


def build_suggestions(metrics: TrackabilityMetrics, config: TrackabilityConfig) -> List[str]:
    suggestions: List[str] = []
    if metrics.min_dim < config.min_resolution:
        suggestions.append(SUGGEST_RESOLUTION)
    if metrics.sharpness < config.min_sharpness:
        suggestions.append(SUGGEST_SHARPNESS)
    if metrics.contrast_std < config.min_contrast:
        suggestions.append(SUGGEST_CONTRAST)
    if metrics.feature_density < config.min_feature_density:
        suggestions.append(SUGGEST_FEATURES)
    if metrics.flat_ratio > config.max_flat_ratio:
        suggestions.append(SUGGEST_FLAT)
    return suggestions


class TrackabilityService:
    """
    Scores artwork for feature-point tracking.
    *   No I/O here, works only with Image objects (numpy arrays).
    *   Stateless between calls; safe to share across threads.
    """

    def __init__(self, config: TrackabilityConfig | None = None):
        if config is None:
            defaults = TrackabilityConfig()
            config = replace(
                defaults,
                max_side=int(os.getenv("TRACK_MAX_SIDE", defaults.max_side)),
                sharpness_ref=float(os.getenv("TRACK_SHARPNESS_REF", defaults.sharpness_ref)),
                contrast_ref=float(os.getenv("TRACK_CONTRAST_REF", defaults.contrast_ref)),
                feature_ref=float(os.getenv("TRACK_FEATURE_REF", defaults.feature_ref)),
                resolution_ref=float(os.getenv("TRACK_RESOLUTION_REF", defaults.resolution_ref)),
                gate_score=int(os.getenv("TRACK_GATE_SCORE", defaults.gate_score)),
            )
        self.config = config

    def _check_dimensions(self, width: int, height: int, what: str) -> None:
        if width < self.config.min_side or height < self.config.min_side:
            raise InvalidInputError(
                f"{what} size {width}x{height} is below the {self.config.min_side}px minimum"
            )

    def measure(self, img: Image) -> TrackabilityMetrics:
        """
        Compute raw metrics for *img*.

        Resolution is judged on the source dimensions; everything else on a
        working copy bounded by ``config.max_side``.
        """
        orig_h, orig_w = img.pixels.shape[:2]
        self._check_dimensions(orig_w, orig_h, "Image")

        working = ImageService.downscale(img.pixels, self.config.max_side)
        work_h, work_w = working.shape[:2]
        self._check_dimensions(work_w, work_h, "Working copy")

        gray = ImageService.to_grayscale(working)
        mean, std = contrast_stats(gray)

        return TrackabilityMetrics(
            sharpness=laplacian_variance(gray),
            contrast_std=std,
            feature_density=feature_density(gray, self.config.edge_threshold),
            min_dim=int(min(orig_w, orig_h)),
            flat_ratio=flat_ratio(gray, mean, self.config.flat_threshold, self.config.flat_sample_step),
        )

    def evaluate(self, metrics: TrackabilityMetrics) -> AnalysisResult:
        """Turn raw metrics into score, label and advice."""
        score = composite_score(metrics, self.config)
        return AnalysisResult(
            score=score,
            label=label_for_score(score, self.config),
            suggestions=tuple(build_suggestions(metrics, self.config)),
            debug=metrics,
            gate_score=self.config.gate_score,
        )

    def analyze(self, img: Image) -> AnalysisResult:
        metrics = self.measure(img)
        result = self.evaluate(metrics)
        logger.info(
            f"Trackability {result.score}/100 for {img.name or 'image'} "
            f"(sharpness={metrics.sharpness:.1f}, contrast={metrics.contrast_std:.1f}, "
            f"features={metrics.feature_density:.3f}, flat={metrics.flat_ratio:.2f}, "
            f"minDim={metrics.min_dim})"
        )
        return result
