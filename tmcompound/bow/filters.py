"""
Filter functions for document-term matrices. Each function takes a :class:`~tmcompound.bow.dtm.SparseDTM` and returns
a new SparseDTM; the input is never modified. Rows that don't contain any counts after filtering are dropped.
"""

import logging
from numbers import Integral
from typing import Iterable

import numpy as np

from .bow_stats import doc_frequencies, mean_tfidf
from .dtm import SparseDTM


logger = logging.getLogger('tmcompound')


def remove_empty_rows(dtm: SparseDTM) -> SparseDTM:
    """
    Remove all rows that don't contain any counts.

    :param dtm: sparse document-term-matrix
    :return: new SparseDTM without empty rows
    """
    return dtm.subset(drop_empty_rows=True)


def remove_uncommon_terms(dtm: SparseDTM, df_threshold: int) -> SparseDTM:
    """
    Remove all terms whose document frequency (number of rows in which a term occurs at least once -- *not* the total
    number of occurrences) is strictly below `df_threshold`.

    Example: With rows ``{d1: {a: 2, b: 1}, d2: {b: 3, c: 1}}`` and ``df_threshold=2``, the terms ``a`` and ``c`` are
    removed and the result is ``{d1: {b: 1}, d2: {b: 3}}``.

    :param dtm: sparse document-term-matrix
    :param df_threshold: minimum document frequency; must be a strictly positive integer
    :return: new SparseDTM
    """
    if not isinstance(df_threshold, Integral) or isinstance(df_threshold, bool) or df_threshold < 1:
        raise ValueError(f'`df_threshold` must be a strictly positive integer, got {df_threshold!r}')

    keep = doc_frequencies(dtm) >= df_threshold
    logger.info(f'removing {int(np.sum(~keep))} of {dtm.n_terms} terms with document frequency below {df_threshold}')

    return dtm.subset(col_mask=keep)


def remove_common_terms(dtm: SparseDTM, df_threshold: float = 0.95) -> SparseDTM:
    """
    Remove all terms whose document frequency *proportion* (i.e. the proportion of rows in which the term occurs) is
    strictly above `df_threshold`.

    :param dtm: sparse document-term-matrix
    :param df_threshold: maximum document frequency proportion in range ``(0, 1]``
    :return: new SparseDTM
    """
    if not 0 < df_threshold <= 1:
        raise ValueError(f'`df_threshold` must be in range (0, 1], got {df_threshold!r}')

    keep = doc_frequencies(dtm, proportions=True) <= df_threshold
    logger.info(f'removing {int(np.sum(~keep))} of {dtm.n_terms} terms with document frequency proportion above '
                f'{df_threshold}')

    return dtm.subset(col_mask=keep)


def remove_terms(dtm: SparseDTM, terms: Iterable[str]) -> SparseDTM:
    """
    Remove the terms in `terms` regardless of their frequency. Terms that are not part of the vocabulary are ignored.

    :param dtm: sparse document-term-matrix
    :param terms: terms to remove
    :return: new SparseDTM
    """
    if isinstance(terms, str):
        terms = [terms]

    remove = set(terms)
    keep = np.array([t not in remove for t in dtm.vocab], dtype=bool)

    return dtm.subset(col_mask=keep)


def filter_terms(dtm: SparseDTM, terms: Iterable[str]) -> SparseDTM:
    """
    Retain only the terms in `terms`. Terms that are not part of the vocabulary are ignored.

    :param dtm: sparse document-term-matrix
    :param terms: terms to retain
    :return: new SparseDTM
    """
    if isinstance(terms, str):
        terms = [terms]

    retain = set(terms)
    keep = np.array([t in retain for t in dtm.vocab], dtype=bool)

    return dtm.subset(col_mask=keep)


def top_terms_by_tfidf(dtm: SparseDTM, k: int, smooth_log: float = 0, smooth_df: float = 0) -> SparseDTM:
    """
    Retain only the `k` terms with the highest mean tfidf value, i.e. the mean of the tfidf values of a term across
    all rows in which it occurs (see :func:`~tmcompound.bow.bow_stats.mean_tfidf`). Ties are broken by term in
    ascending order. If `k` is larger than the vocabulary size, all terms are retained.

    :param dtm: sparse document-term-matrix
    :param k: number of terms to retain; must be a strictly positive integer
    :param smooth_log: smoothing constant inside log() for idf
    :param smooth_df: smoothing constant to add to document frequency for idf
    :return: new SparseDTM
    """
    if not isinstance(k, Integral) or isinstance(k, bool) or k < 1:
        raise ValueError(f'`k` must be a strictly positive integer, got {k!r}')

    if k >= dtm.n_terms:
        return dtm.subset()

    scores = mean_tfidf(dtm, smooth_log=smooth_log, smooth_df=smooth_df)
    # vocab is sorted, so a stable sort on descending scores breaks ties by term in ascending order
    order = np.argsort(-scores, kind='stable')
    keep = np.zeros(dtm.n_terms, dtype=bool)
    keep[order[:k]] = True

    logger.info(f'retaining {k} of {dtm.n_terms} terms by mean tfidf')

    return dtm.subset(col_mask=keep)
