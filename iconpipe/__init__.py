"""
Build-time pipeline that optimizes SVG icons and normalizes their filenames.
"""
__version__ = "0.1.0"
