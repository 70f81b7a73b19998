"""Ranking and stable pagination engine for the feed."""
