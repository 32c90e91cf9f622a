"""Pebble: a small headless blog CMS API."""

__version__ = "0.1.0"
