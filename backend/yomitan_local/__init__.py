"""
Local host for the Yomitan audio lookup worker.

Runs the edge worker's router against a local SQLite store and a local
directory of audio files.
"""

__version__ = "0.1.0"
