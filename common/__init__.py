"""
Shared utilities for the transcript gateway
"""
