"""Core module - relevance scoring, context assembly, prompts and errors."""
