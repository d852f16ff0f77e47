"""Courtroom role-play client core: packets, chat logs, countdowns, music loop data, animation playback and demo replay."""

__version__ = "0.1.0"