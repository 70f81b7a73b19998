"""Personalized ranked feed service."""
