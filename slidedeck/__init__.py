"""
Slide deck conversion and catalog service.

This package turns uploaded PowerPoint/Keynote decks into numbered slide
images plus extracted text, and keeps a small catalog of the results.
"""

__version__ = "1.7.0"
