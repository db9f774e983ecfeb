"""
Command-line interface for Margay Core.
"""
