"""Concrete collaborators that feed the scan engine from an on-disk export."""
