"""Retrieval-augmented document indexing and question answering engine."""

__version__ = "0.1.0"
