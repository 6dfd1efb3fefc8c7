"""Utility functions."""

from app.utils.time import format_datetime, format_optional

__all__ = ["format_datetime", "format_optional"]
