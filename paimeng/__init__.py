"""Chat bot building blocks: custom dialogues, game accounts, daily note and check-in, and wish simulation."""

__version__ = "0.1.0"