"""Capsule tree: canonical models, payload normalizers and endpoints."""
