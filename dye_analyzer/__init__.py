"""
Dye Analyzer

Classifies dyed items against a reference color catalog using CIE76 ΔE
ranking, detects hex patterns and word matches, and keeps the classified
collection in a debounced JSON-backed store.
"""

__version__ = "0.1.0"
__author__ = "Dye Analyzer Team"
