"""
Light World Mission CLI

Member account tools for the Light World Mission church backend: login,
registration, profile editing, and password recovery by emailed code.
"""

__version__ = "1.0.0"
