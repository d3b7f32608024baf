"""
Ajo Insights: analytics and experimentation engine for savings groups.
"""

__version__ = "0.1.0"
