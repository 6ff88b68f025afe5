"""Deterministic analysis of uploaded tabular datasets."""
# analytics must initialise before loader: its stages import the loader's types.
from . import analytics
from .loader import ParsedDataset, load_dataset

__all__ = ["analytics", "ParsedDataset", "load_dataset"]
