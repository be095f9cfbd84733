"""Degree modality workflow engine."""
