"""
kvcache command-line interface.
"""

from kvcache import __version__

__all__ = ['__version__']
