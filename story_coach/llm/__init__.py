"""LLM client layer."""
