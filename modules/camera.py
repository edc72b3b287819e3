"""
Camera math shared by the engine and the in-page controller.

The page content sits in a viewport-sized wrapper transformed with
`translate(dx, dy) scale(s)` around the viewport center. A point p maps to
c + d + s * (p - c), so zooming on focus f with d = (c - f) * (s - 1)
keeps f fixed on screen. The wrapper covers the viewport exactly when
s >= 1 and |d| <= c * (s - 1) on each axis.

cinematic_effects.js implements the same formulas; keep them in sync.
"""
from dataclasses import dataclass

MIN_SCALE = 1.0


@dataclass(frozen=True)
class CameraState:
    scale: float = 1.0
    dx: float = 0.0
    dy: float = 0.0


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_scale(scale: float) -> float:
    """Scales below 1.0 would expose the background; snap them to 1.0."""
    try:
        scale = float(scale)
    except (TypeError, ValueError):
        return MIN_SCALE
    if scale != scale or scale < MIN_SCALE:
        return MIN_SCALE
    return scale


def max_offset(scale: float, extent: float) -> float:
    return (extent / 2) * (clamp_scale(scale) - 1)


def clamp_offset(scale: float, dx: float, dy: float,
                 width: float, height: float) -> tuple[float, float]:
    limit_x = max_offset(scale, width)
    limit_y = max_offset(scale, height)
    return clamp(dx, -limit_x, limit_x), clamp(dy, -limit_y, limit_y)


def focus_offset(scale: float, focus_x: float, focus_y: float,
                 width: float, height: float) -> tuple[float, float]:
    """Offset that keeps the focal point in place, clamped to full coverage."""
    scale = clamp_scale(scale)
    dx = (width / 2 - focus_x) * (scale - 1)
    dy = (height / 2 - focus_y) * (scale - 1)
    return clamp_offset(scale, dx, dy, width, height)


def camera_for(scale: float, focus_x: float, focus_y: float,
               width: float, height: float) -> CameraState:
    scale = clamp_scale(scale)
    dx, dy = focus_offset(scale, focus_x, focus_y, width, height)
    return CameraState(scale=scale, dx=dx, dy=dy)


def content_rect(state: CameraState, width: float, height: float) -> tuple[float, float, float, float]:
    """(left, top, right, bottom) of the transformed wrapper on screen."""
    cx, cy = width / 2, height / 2
    return (
        cx + state.dx - state.scale * cx,
        cy + state.dy - state.scale * cy,
        cx + state.dx + state.scale * cx,
        cy + state.dy + state.scale * cy,
    )


def covers_viewport(state: CameraState, width: float, height: float,
                    tolerance: float = 1e-6) -> bool:
    left, top, right, bottom = content_rect(state, width, height)
    return (
        left <= tolerance
        and top <= tolerance
        and right >= width - tolerance
        and bottom >= height - tolerance
    )


def ease_in_out_cubic(progress: float) -> float:
    p = clamp(progress, 0.0, 1.0)
    if p < 0.5:
        return 4 * p * p * p
    return 1 - ((-2 * p + 2) ** 3) / 2


def interpolate(start: CameraState, end: CameraState, progress: float,
                width: float, height: float) -> CameraState:
    """One transition frame: eased blend of scale and offset, re-clamped."""
    eased = ease_in_out_cubic(progress)
    scale = clamp_scale(start.scale + (end.scale - start.scale) * eased)
    dx = start.dx + (end.dx - start.dx) * eased
    dy = start.dy + (end.dy - start.dy) * eased
    dx, dy = clamp_offset(scale, dx, dy, width, height)
    return CameraState(scale=scale, dx=dx, dy=dy)


def cursor_path(start: tuple[float, float], end: tuple[float, float],
                steps: int) -> list[tuple[float, float]]:
    """Eased points from start (exclusive) to end (inclusive)."""
    steps = max(1, int(steps))
    (x0, y0), (x1, y1) = start, end
    points = []
    for i in range(1, steps + 1):
        eased = ease_in_out_cubic(i / steps)
        points.append((x0 + (x1 - x0) * eased, y0 + (y1 - y0) * eased))
    return points
