"""Tender AI tagging Lambda."""
