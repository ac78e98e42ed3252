"""Adaptive web content retrieval."""
