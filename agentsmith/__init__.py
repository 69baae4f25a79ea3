"""
Agent Smith core.
Agent task processing and organizational routing for citizen requests.
"""

__version__ = "0.3.0"
