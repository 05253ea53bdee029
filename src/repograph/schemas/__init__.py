"""Pydantic models for graph, architecture and heatmap payloads."""
