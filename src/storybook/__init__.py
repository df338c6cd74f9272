"""Storybook - an illustration library that lets new story pages reuse previously generated images."""

__version__ = "0.1.0"
