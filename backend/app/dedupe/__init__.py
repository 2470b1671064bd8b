"""Duplicate account detection, primary ranking and ownership merges."""
