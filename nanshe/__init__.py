"""
nanshe learning core.

Normalization of learning-platform payloads (capsules, lessons, SRS items,
journal entries), progress state tracking and the interactive exercise
state machines that submit answers to the platform.
"""

__version__ = "1.0.0"
