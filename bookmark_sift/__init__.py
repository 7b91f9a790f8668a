"""
Bookmark Sift - health tracking and cleanup for browser bookmark collections.
"""

__version__ = "1.0.0"
