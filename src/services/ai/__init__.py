"""Streaming recognition and ranking services."""
