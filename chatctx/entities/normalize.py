"""Canonical forms used only for equality tests between entity values."""

from __future__ import annotations

import re
from dataclasses import dataclass

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_NON_ALNUM_ANY_CASE_RE = re.compile(r"[^A-Za-z0-9]")


@dataclass(frozen=True)
class NormalizationConfig:
    trim: bool = True
    lowercase: bool = True
    strip_punctuation: bool = True


DEFAULT_NORMALIZATION = NormalizationConfig()


def normalize(value: str, config: NormalizationConfig | None = None) -> str:
    """Return the comparison form of *value*.

    The default strips whitespace, case-folds and drops every character
    outside ``[a-z0-9]``. Display values are never replaced by this form.
    """
    cfg = config or DEFAULT_NORMALIZATION
    text = str(value)
    if cfg.trim:
        text = text.strip()
    if cfg.lowercase:
        text = text.lower()
    if cfg.strip_punctuation:
        pattern = _NON_ALNUM_RE if cfg.lowercase else _NON_ALNUM_ANY_CASE_RE
        text = pattern.sub("", text)
    return text
