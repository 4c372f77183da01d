"""Contracts (protocols) for collaborators of the signaling core."""
