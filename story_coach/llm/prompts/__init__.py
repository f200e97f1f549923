"""Prompt templates and response parsers."""
