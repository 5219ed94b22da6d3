"""Venue reservation backend: booking lifecycle, notifications and evidence access."""

__version__ = "1.0.0"
