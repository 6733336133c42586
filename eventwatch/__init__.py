"""
eventwatch — Calendar watcher that raises escalating alerts before events start.

Polls one or more calendars every 30 seconds, works out which configured
warnings are due for which events, and hands each (event, alert) pair to a
notification sink exactly once.
"""

__version__ = "1.0.0"
__license__ = "MIT"

__all__ = ["__version__", "__license__"]
