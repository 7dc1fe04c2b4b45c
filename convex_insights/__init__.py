"""Convex Insights - log stream ingestion and analytics for serverless functions."""

__version__ = "1.0.0"
