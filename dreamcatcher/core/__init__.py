"""
Core configuration, data models, and error types for Dreamcatcher.
"""
