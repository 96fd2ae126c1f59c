"""Dashboard builder: chart widgets backed by ad-hoc reporting queries"""

__version__ = "0.1.0"
