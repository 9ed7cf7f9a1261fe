"""iqfetch - latest IQ Server policy violation reports as CSV."""

__version__ = "0.3.0"
