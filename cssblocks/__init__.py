"""
cssblocks - Application build stage for CSS Blocks.

Combines per-template block stylesheets into one optimized stylesheet and
generates the runtime data that maps block styles to output class names.
"""

__version__ = "0.1.0"
