"""
Field attendance and weapon chain-of-custody backend
"""
__version__ = "1.0.0"
