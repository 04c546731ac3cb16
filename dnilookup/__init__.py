"""
DNI Lookup - rendered search page fetching and identity record extraction.
"""

__version__ = "0.1.0"
