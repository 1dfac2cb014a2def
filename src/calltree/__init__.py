"""calltree: regex-driven call hierarchy for C/C++ source trees."""

__version__ = "0.1.0"
