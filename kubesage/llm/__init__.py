"""LLM access layer: chat clients, prompt templates and errors."""
