"""Spaced-repetition review items, summaries and the review session flow."""
