"""Linear, color, and categorical scales shared by the choropleth and symbol engines."""

from __future__ import annotations

import bisect
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping, Sequence

from .settings import ColorBinding


@dataclass(frozen=True, slots=True)
class LinearScale:
    """Piecewise-linear numeric scale with clamping.

    `domain` and `range` have the same length (2 or more). A degenerate segment
    (equal domain endpoints) maps to its starting range value instead of dividing
    by zero.
    """

    domain: tuple[float, ...]
    range: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.domain) < 2 or len(self.domain) != len(self.range):
            raise ValueError("LinearScale needs matching domain and range of length >= 2")

    def __call__(self, value: float) -> float:
        domain, out = _ascending(self.domain, self.range)
        if value <= domain[0]:
            return out[0]
        if value >= domain[-1]:
            return out[-1]
        i = min(max(bisect.bisect_right(domain, value) - 1, 0), len(domain) - 2)
        t = _fraction(value, domain[i], domain[i + 1])
        return out[i] + (out[i + 1] - out[i]) * t


@dataclass(frozen=True, slots=True)
class ColorScale:
    """Piecewise RGB interpolation between color stops, clamped to the end stops."""

    domain: tuple[float, ...]
    colors: tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.domain) < 2 or len(self.domain) != len(self.colors):
            raise ValueError("ColorScale needs matching domain and colors of length >= 2")

    def __call__(self, value: float) -> str:
        domain, colors = _ascending(self.domain, self.colors)
        if value <= domain[0]:
            return _canonical(colors[0])
        if value >= domain[-1]:
            return _canonical(colors[-1])
        i = min(max(bisect.bisect_right(domain, value) - 1, 0), len(domain) - 2)
        t = _fraction(value, domain[i], domain[i + 1])
        return interpolate_rgb(colors[i], colors[i + 1], t)


class CategoricalScale:
    """Assigns palette colors to distinct values in order, cycling past the palette length."""

    def __init__(self, values: Sequence[str], palette: Sequence[str], default: str) -> None:
        self.default = default
        self.palette = tuple(palette)
        self._lookup: dict[str, str] = {}
        if self.palette:
            for i, value in enumerate(values):
                self._lookup.setdefault(value, self.palette[i % len(self.palette)])

    @property
    def assignments(self) -> Mapping[str, str]:
        return dict(self._lookup)

    def __call__(self, value: Any) -> str:
        if value is None:
            return self.default
        return self._lookup.get(str(value).strip(), self.default)


def interpolate_rgb(start: str, end: str, t: float) -> str:
    """Blend two colors channel-wise in RGB; `t` is clamped to [0, 1]."""
    t = min(max(t, 0.0), 1.0)
    a = _rgb255(start)
    b = _rgb255(end)
    channels = tuple(math.floor(a[i] + (b[i] - a[i]) * t + 0.5) for i in range(3))
    return _to_hex(channels)


def build_color_scale(
    binding: ColorBinding,
    *,
    unique_values: Sequence[str],
    fallback_color: str,
) -> ColorScale | CategoricalScale:
    """Build the color scale a binding describes.

    Linear bindings use min/max (and mid when a mid color is set); unset stop
    colors fall back to `fallback_color`. Categorical bindings pair the data's
    distinct values with the configured colors in order.
    """
    if binding.is_linear:
        min_color = binding.min_color or fallback_color
        max_color = binding.max_color or fallback_color
        if binding.mid_color:
            return ColorScale(
                domain=(binding.min_value, binding.mid_value, binding.max_value),
                colors=(min_color, binding.mid_color, max_color),
            )
        return ColorScale(domain=(binding.min_value, binding.max_value), colors=(min_color, max_color))
    return CategoricalScale(unique_values, binding.palette_colors, fallback_color)


def _ascending(domain: Sequence[float], out: Sequence[Any]) -> tuple[tuple[float, ...], tuple[Any, ...]]:
    if domain[0] > domain[-1]:
        return tuple(reversed(domain)), tuple(reversed(out))
    return tuple(domain), tuple(out)


def _fraction(value: float, lo: float, hi: float) -> float:
    span = hi - lo
    if span == 0:
        return 0.0
    return (value - lo) / span


def _rgb255(color: str) -> tuple[float, float, float]:
    r, g, b = _require_matplotlib_colors().to_rgb(color)
    return (r * 255.0, g * 255.0, b * 255.0)


def _canonical(color: str) -> str:
    return _to_hex(tuple(math.floor(c + 0.5) for c in _rgb255(color)))


def _to_hex(channels: Sequence[int]) -> str:
    colors = _require_matplotlib_colors()
    return colors.to_hex(tuple(min(max(c, 0), 255) / 255.0 for c in channels))


@lru_cache(maxsize=1)
def _require_matplotlib_colors() -> Any:
    try:
        import matplotlib.colors as colors
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for color interpolation") from exc
    return colors
