"""Cutline: annotation, segmentation and slash-insertion engine for evidence documents."""

__version__ = "0.4.0"
