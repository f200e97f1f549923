"""Story Coach: archetype detection, coaching interviews, story generation and evaluation."""

__version__ = "0.1.0"
