"""Moderation review engine: target scheduling, gated decisions and audit."""

from __future__ import annotations

__version__ = "0.1.0"
