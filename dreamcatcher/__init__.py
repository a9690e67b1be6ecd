"""
Dreamcatcher - Dream journal with comic page generation

Record dreams, rewrite them into calmer narratives, and turn the rewritten
story into illustrated comic panels composed onto a printable page.
"""

__version__ = "1.0.0"
__author__ = "Dreamcatcher Team"
