"""
Dreamcatcher CLI
"""
