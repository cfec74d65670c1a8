"""
hrflow: approval-line workflow and shift-grid service
"""

__version__ = "1.0.0"
