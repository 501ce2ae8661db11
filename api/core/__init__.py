"""
Core configuration, logging, errors and dependencies.
"""
