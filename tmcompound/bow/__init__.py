"""
Bag-of-Words (BoW) sub-package with modules for generating document-term-matrices (DTMs), filtering them and
calculating common statistics for the BoW model.
"""

from . import bow_stats, dtm, filters
from .dtm import SparseDTM, aggregate_terms, dtm_from_pairs, combine_dtms, field_selector, pos_selector, \
    compound_selector
