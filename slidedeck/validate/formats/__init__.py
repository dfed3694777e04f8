"""
Format-specific validators for slide deck uploads.
"""

from . import key, ppt, pptx

__all__ = ['key', 'ppt', 'pptx']
