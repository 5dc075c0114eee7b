"""Cluster tool plugins exposed to the generator."""
