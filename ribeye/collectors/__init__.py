"""Adapters for the external collaborators: dump discovery and MRT decoding."""
