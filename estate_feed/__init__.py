"""
Estate Feed: social real-estate listings with an optimistic client data layer.
"""

__version__ = "1.0.0"
