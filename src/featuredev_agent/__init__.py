"""
Feature development agent - code-generation conversation controller.
"""

__version__ = "0.1.0"
