"""Localization, sensor drivers and drive-by-wire control for a small autonomous vehicle."""

__version__ = "0.1.0"