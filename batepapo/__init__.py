"""Bate-papo chat backend: presence tracking, message visibility and the inactivity reaper."""

__version__ = "0.1.0"
