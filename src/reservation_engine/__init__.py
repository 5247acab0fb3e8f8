"""
Reservation availability and table allocation engine.
"""
__version__ = "0.1.0"
