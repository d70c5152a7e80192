"""LLM transport and prompt templates."""
