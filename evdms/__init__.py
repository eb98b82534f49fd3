"""EVDMS central parts fulfillment back end"""

__version__ = "1.4.0"
