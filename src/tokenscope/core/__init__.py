"""
tokenscope Core

Configuration, logging, exceptions and shared data models.
"""
