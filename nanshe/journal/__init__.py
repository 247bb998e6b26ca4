"""Learner journal entries."""
