"""
Value types shared across the engines.

Modules
-------
taxonomy : Category (A/B/C/Z) and Quadrant enumerations.
product  : ProductMetrics input type and rayon-key resolution.
"""
