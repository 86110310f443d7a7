"""Adapters implementing the identity domain ports."""
