"""Core services: configuration, logging, progress, caching and errors."""
