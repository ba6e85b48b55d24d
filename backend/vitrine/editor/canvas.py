"""
Display-space helpers for the retouch canvas.

The client sends what the user did over the *displayed* image (pointer paths
and a crop rectangle). Hotspots and crops are scaled to the natural image size;
the mask is rendered at display size, the same way the browser canvas is.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from vitrine.ai.image_utils import MASK_RED_BGRA, encode_png

CLICK_TOLERANCE_PX = 5
DEFAULT_BRUSH_SIZE = 30
MASK_ALPHA = 0.7

Point = Tuple[float, float]
Size = Tuple[int, int]  # (width, height)


@dataclass
class Gesture:
    kind: str  # stroke|click
    points: List[Point]

    @property
    def start(self) -> Point:
        return self.points[0]


@dataclass
class Stroke:
    points: List[Point]
    mode: str = "brush"  # brush|eraser


def classify_gesture(points: Sequence[Point]) -> Gesture:
    """A path that ever travels more than 5 px from where it started is a stroke."""
    if not points:
        raise ValueError("Gesto vazio.")
    pts = [(float(x), float(y)) for x, y in points]
    x0, y0 = pts[0]
    moved = any(math.hypot(x - x0, y - y0) > CLICK_TOLERANCE_PX for x, y in pts[1:])
    if moved:
        return Gesture("stroke", pts)
    return Gesture("click", pts[:1])


def _scale(display_size: Size, natural_size: Size) -> Tuple[float, float]:
    dw, dh = display_size
    nw, nh = natural_size
    if dw <= 0 or dh <= 0:
        raise ValueError("Tamanho de exibição inválido.")
    return nw / dw, nh / dh


def to_natural(point: Point, display_size: Size, natural_size: Size) -> Tuple[int, int]:
    sx, sy = _scale(display_size, natural_size)
    return int(round(point[0] * sx)), int(round(point[1] * sy))


def scale_crop(rect: Sequence[float], display_size: Size, natural_size: Size) -> Tuple[int, int, int, int]:
    """(x, y, w, h) in display px -> natural px."""
    x, y, w, h = rect
    sx, sy = _scale(display_size, natural_size)
    return int(round(x * sx)), int(round(y * sy)), int(round(w * sx)), int(round(h * sy))


def render_mask(
    strokes: Sequence[Stroke],
    display_size: Size,
    brush_size: Optional[int] = None,
    output_size: Optional[Size] = None,
) -> bytes:
    """Transparent PNG with the painted area in translucent red, optionally resized to output_size."""
    width, height = display_size
    if width <= 0 or height <= 0:
        raise ValueError("Tamanho de exibição inválido.")
    thickness = max(1, int(brush_size or DEFAULT_BRUSH_SIZE))

    b, g, r, _ = MASK_RED_BGRA
    paint = (b, g, r, int(round(255 * MASK_ALPHA)))
    clear = (0, 0, 0, 0)

    mask = np.zeros((height, width, 4), dtype=np.uint8)
    for stroke in strokes:
        color = clear if stroke.mode == "eraser" else paint
        pts = [(int(round(x)), int(round(y))) for x, y in stroke.points]
        if len(pts) == 1:
            cv2.circle(mask, pts[0], thickness // 2, color, -1)
            continue
        # cv2 desenha linhas grossas com pontas arredondadas
        for p1, p2 in zip(pts, pts[1:]):
            cv2.line(mask, p1, p2, color, thickness)

    if output_size and tuple(output_size) != (width, height):
        mask = cv2.resize(mask, (int(output_size[0]), int(output_size[1])), interpolation=cv2.INTER_NEAREST)
    return encode_png(mask)


def mask_has_paint(mask_png: bytes) -> bool:
    arr = cv2.imdecode(np.frombuffer(mask_png, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    return arr is not None and arr.ndim == 3 and arr.shape[2] == 4 and bool(arr[:, :, 3].any())
