"""Paced rendering of arriving model text (typing effect)."""
