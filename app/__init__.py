"""
Wikipedia Six Degrees - FastAPI Application

This package contains the core application logic for finding the shortest
chain of links between two Wikipedia articles using breadth-first search.
"""

__version__ = "1.0.0"
