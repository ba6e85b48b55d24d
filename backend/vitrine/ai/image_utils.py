from __future__ import annotations

import base64
import re
from typing import Tuple

import cv2
import numpy as np

WHITE = (255, 255, 255)
MASK_RED_BGRA = (68, 68, 239, 255)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


def decode_image(data: bytes) -> np.ndarray:
    """Decodes to BGR; transparent pixels are flattened onto white."""
    arr = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(arr, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ValueError("Falha ao decodificar imagem.")
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    if img.shape[2] == 4:
        alpha = img[:, :, 3:4].astype(np.float32) / 255.0
        rgb = img[:, :, :3].astype(np.float32)
        flat = rgb * alpha + 255.0 * (1.0 - alpha)
        return np.clip(flat, 0, 255).astype(np.uint8)
    return img


def encode_png(img: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", img)
    if not ok:
        raise RuntimeError("Falha ao codificar PNG.")
    return buf.tobytes()


def image_size(data: bytes) -> Tuple[int, int]:
    h, w = decode_image(data).shape[:2]
    return int(w), int(h)


def sniff_mime(data: bytes) -> str:
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return "application/octet-stream"


def to_data_url(data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def parse_data_url(data_url: str) -> Tuple[bytes, str]:
    m = _DATA_URL_RE.match(data_url or "")
    if not m:
        raise ValueError("Data URL inválida.")
    return base64.b64decode(m.group("data")), m.group("mime")


def standardize_to_png(data: bytes) -> bytes:
    return encode_png(decode_image(data))


def resize_and_pad(
    data: bytes,
    target_width: int,
    target_height: int,
    mode: str = "crop",
    background: Tuple[int, int, int] = WHITE,
) -> bytes:
    """
    crop: escala para cobrir o alvo e corta o centro (sem bordas).
    pad: escala para caber no alvo e centraliza sobre o fundo.
    """
    if target_width <= 0 or target_height <= 0:
        raise ValueError("Dimensões de destino inválidas.")
    if mode not in ("crop", "pad"):
        raise ValueError(f"Modo de redimensionamento inválido: {mode}")

    src = decode_image(data)
    sh, sw = src.shape[:2]
    src_ratio = sw / sh
    target_ratio = target_width / target_height

    if mode == "crop":
        if src_ratio > target_ratio:
            crop_w = int(round(sh * target_ratio))
            x0 = (sw - crop_w) // 2
            region = src[:, x0:x0 + crop_w]
        else:
            crop_h = int(round(sw / target_ratio))
            y0 = (sh - crop_h) // 2
            region = src[y0:y0 + crop_h, :]
        interp = cv2.INTER_AREA if region.shape[1] > target_width else cv2.INTER_CUBIC
        out = cv2.resize(region, (target_width, target_height), interpolation=interp)
        return encode_png(out)

    scale = min(target_width / sw, target_height / sh)
    new_w = max(1, int(round(sw * scale)))
    new_h = max(1, int(round(sh * scale)))
    interp = cv2.INTER_AREA if scale < 1 else cv2.INTER_CUBIC
    resized = cv2.resize(src, (new_w, new_h), interpolation=interp)

    canvas = np.full((target_height, target_width, 3), background, dtype=np.uint8)
    x0 = (target_width - new_w) // 2
    y0 = (target_height - new_h) // 2
    canvas[y0:y0 + new_h, x0:x0 + new_w] = resized
    return encode_png(canvas)


def build_outpaint_canvas(data: bytes, target_width: int, target_height: int) -> Tuple[bytes, bytes]:
    """
    Returns (canvas_png, mask_png): the image fitted on a white canvas and a
    transparent mask that is red exactly over the padding.
    """
    src = decode_image(data)
    sh, sw = src.shape[:2]
    scale = min(target_width / sw, target_height / sh)
    new_w = max(1, int(round(sw * scale)))
    new_h = max(1, int(round(sh * scale)))
    x0 = (target_width - new_w) // 2
    y0 = (target_height - new_h) // 2

    interp = cv2.INTER_AREA if scale < 1 else cv2.INTER_CUBIC
    canvas = np.full((target_height, target_width, 3), WHITE, dtype=np.uint8)
    canvas[y0:y0 + new_h, x0:x0 + new_w] = cv2.resize(src, (new_w, new_h), interpolation=interp)

    mask = np.zeros((target_height, target_width, 4), dtype=np.uint8)
    mask[:, :] = MASK_RED_BGRA
    mask[y0:y0 + new_h, x0:x0 + new_w] = 0
    return encode_png(canvas), encode_png(mask)


def crop_region(data: bytes, x: int, y: int, width: int, height: int) -> bytes:
    src = decode_image(data)
    sh, sw = src.shape[:2]
    x1 = max(0, min(sw, int(x)))
    y1 = max(0, min(sh, int(y)))
    x2 = max(0, min(sw, int(x + width)))
    y2 = max(0, min(sh, int(y + height)))
    if x2 - x1 < 1 or y2 - y1 < 1:
        raise ValueError("Área de recorte vazia.")
    return encode_png(src[y1:y2, x1:x2])
