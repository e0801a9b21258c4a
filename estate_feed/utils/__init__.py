"""
Utility modules for Estate Feed.
"""
