"""Utility modules for the pgtestbed framework."""
