"""
Data Transformation Module
"""
from .allocation import allocate, allocation_summary

__all__ = [
    "allocate",
    "allocation_summary",
]
