"""
YouTube Transcript Gateway
"""
__version__ = "1.0.0"
