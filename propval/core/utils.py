import math
import re
import time
import unicodedata
from urllib.parse import urlsplit


def fnv1a_32(s: str) -> int:
    """Deterministic, fast hash for seed generation."""
    h = 0x811c9dc5
    for c in s.encode("utf-8"):
        h ^= c
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h


def seeded_rand(seed: int, n: int = 1) -> list[float]:
    """
    Stateless pseudo-random generator (Mulberry32-like) so
    same seed → same outputs without storing PRNG state.
    """
    out = []
    t = (seed + 0x6D2B79F5) & 0xFFFFFFFF
    for _ in range(n):
        t = (t ^ (t >> 15)) * (t | 1) & 0xFFFFFFFF
        t ^= t + ((t ^ (t >> 7)) * (t | 61) & 0xFFFFFFFF)
        r = ((t ^ (t >> 14)) & 0xFFFFFFFF) / 4294967296.0
        out.append(r)
    return out


def money_band(base: int, seed: int) -> tuple[int, int]:
    """Compute +/- spread around base price using seed for variety."""
    spread = 0.05 + seeded_rand(seed+1, 1)[0] * 0.07  # 5–12%
    low = int(round(base * (1 - spread)))
    high = int(round(base * (1 + spread)))
    return low, high


def to_number(value) -> float:
    """
    Lenient numeric coercion for caller-supplied property fields.
    Anything missing or malformed counts as zero.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(str(value).replace(",", "").strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def fold_text(text: str | None) -> str:
    """
    Lowercase, strip Vietnamese diacritics and drop everything that is not a
    letter or digit: "Quận Đống Đa" -> "quandongda", "dong_da" -> "dongda".
    """
    if not text:
        return ""
    text = text.replace("đ", "d").replace("Đ", "D")
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r"[^0-9a-z]", "", stripped.lower())


def mask_secret(value: str | None) -> str:
    """Keep the first and last 4 characters of a credential for log lines."""
    if not value:
        return "not set"
    if len(value) < 8:
        return "***"
    return f"{value[:4]}***{value[-4:]}"


def mask_endpoint(url: str | None) -> str:
    """https://api.example.com/v1 -> https://api*example*com/***"""
    if not url:
        return "not set"
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return "***"
    return f"{parts.scheme}://{parts.netloc.replace('.', '*')}/***"


def elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 1)
