"""
Binning
=======

Per-axis binning rules (:class:`BinningData`) and their composition into a
multi-axis :class:`BinUtility` mapping 3D positions to bin triples.
"""
from .data import BinningData, BinningOption, BinningValue
from .utility import BinUtility

__all__ = ["BinningData", "BinningOption", "BinningValue", "BinUtility"]
