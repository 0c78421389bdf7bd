"""Spectrum sources and manifest export."""
