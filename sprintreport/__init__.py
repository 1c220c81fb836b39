"""
Sprint report generation: collect sprint data from the tracker, generate a
structured partner-facing report and publish it as a document page.
"""

__version__ = "0.1.0"
