"""Workspace context and the collaborators that read files, search and Git history."""
