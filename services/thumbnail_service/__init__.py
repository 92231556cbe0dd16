"""Thumbnail composition service: procedural and token-template SVG layouts with raster export."""

__version__ = "0.1.0"
