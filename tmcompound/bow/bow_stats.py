"""
Common statistics from bag-of-words (BoW) matrices, i.e. :class:`~tmcompound.bow.dtm.SparseDTM` objects.

All functions here are pure reads: they never modify the passed DTM.
"""

from typing import Union, Optional, Callable, Dict, Mapping, Sequence, Tuple, Any

import numpy as np
import pandas as pd
from scipy.sparse import csr_matrix, diags

from ..utils import dict2df
from .dtm import SparseDTM


def _check_dtm(dtm: SparseDTM) -> None:
    if not isinstance(dtm, SparseDTM):
        raise ValueError('`dtm` must be a SparseDTM object')


def doc_lengths(dtm: SparseDTM) -> np.ndarray:
    """
    Return the length, i.e. number of terms for each row in document-term-matrix `dtm`.
    This corresponds to the row-wise sums in `dtm`.

    :param dtm: sparse document-term-matrix of size NxM (N rows, M is vocab size) with raw terms counts
    :return: NumPy array of size N (number of rows) with integers indicating the number of terms per row
    """
    _check_dtm(dtm)
    return np.asarray(dtm.matrix.sum(axis=1)).ravel()


def doc_frequencies(dtm: SparseDTM, min_val: int = 1, proportions: bool = False) -> np.ndarray:
    """
    For each term in the vocab of `dtm` (i.e. its columns), return in how many rows it occurs at least `min_val`
    times. This is the *document frequency* of a term -- not the total number of occurrences (see
    :func:`term_frequencies` for that).

    :param dtm: sparse document-term-matrix of size NxM (N rows, M is vocab size) with raw term counts.
    :param min_val: threshold for counting occurrences
    :param proportions: If `proportions` is True, return proportions scaled to the number of rows instead of
                        absolute numbers.
    :return: NumPy array of size M (vocab size) indicating how often each term occurs at least `min_val` times.
    """
    _check_dtm(dtm)

    if min_val < 1:
        raise ValueError('`min_val` must be at least 1')

    mat = dtm.matrix
    if min_val == 1:
        doc_freq = np.bincount(mat.indices, minlength=mat.shape[1])
    else:
        doc_freq = np.asarray((mat >= min_val).sum(axis=0)).ravel()

    if proportions:
        if dtm.n_rows == 0:
            return doc_freq.astype(float)
        return doc_freq / dtm.n_rows
    else:
        return doc_freq


def term_frequencies(dtm: SparseDTM, proportions: bool = False) -> np.ndarray:
    """
    Return the number of occurrences of each term in the vocab across all rows in document-term-matrix `dtm`.
    This corresponds to the column-wise sums in `dtm`.

    :param dtm: sparse document-term-matrix of size NxM (N rows, M is vocab size) with raw term counts.
    :param proportions: If `proportions` is True, return proportions scaled to the number of terms in the whole `dtm`.
    :return: NumPy array of size M (vocab size) with the number of occurrences of each term in the vocab
    """
    _check_dtm(dtm)

    unnorm = np.asarray(dtm.matrix.sum(axis=0)).ravel()

    if proportions:
        n = unnorm.sum()
        if n == 0:
            raise ValueError('`dtm` does not contain any terms (is all-zero)')
        else:
            return unnorm / n
    else:
        return unnorm


def column_sums(dtm: SparseDTM, as_table: bool = False) -> Union[Dict[str, int], pd.DataFrame]:
    """
    Return the total number of occurrences of each term across all rows as dict that maps terms to counts, sorted by
    count in descending order (ties are sorted by term in ascending order).

    :param dtm: sparse document-term-matrix
    :param as_table: if True, return a dataframe with columns ``term, count`` instead of a dict
    :return: dict mapping terms to counts or dataframe
    """
    sums = term_frequencies(dtm)
    vocab = dtm.vocab
    order = sorted(range(len(sums)), key=lambda i: (-sums[i], vocab[i]))
    res = {vocab[i]: int(sums[i]) for i in order}

    if as_table:
        return dict2df(res, key_name='term', value_name='count')
    else:
        return res


def tf_proportions(dtm: SparseDTM) -> csr_matrix:
    """
    Transform raw count document-term-matrix `dtm` to term frequency matrix with proportions, i.e. term counts
    normalized by row length. Rows without any counts remain all-zero.

    :param dtm: sparse document-term-matrix of size NxM (N rows, M is vocab size) with raw term counts
    :return: sparse term frequency matrix of size NxM with proportions
    """
    if 0 in dtm.shape:
        return csr_matrix(dtm.shape, dtype=float)

    lengths = doc_lengths(dtm).astype(float)
    norm_factor = np.divide(1.0, lengths, out=np.zeros_like(lengths), where=lengths > 0)

    return csr_matrix(diags(norm_factor) @ dtm.matrix.astype(float))


def idf(dtm: SparseDTM, smooth_log: float = 0, smooth_df: float = 0) -> np.ndarray:
    """
    Calculate inverse document frequency (idf) vector from raw count document-term-matrix `dtm` with formula
    ``log(smooth_log + N / (smooth_df + df))``, where ``N`` is the number of rows, ``df`` is the document frequency
    (see function :func:`~tmcompound.bow.bow_stats.doc_frequencies`), `smooth_log` and `smooth_df` are smoothing
    constants. With default arguments, the formula is thus ``log(N/df)``, which is zero for terms that occur in all
    rows.

    The result is never negative: values below zero (only possible with smoothing) are set to zero. Terms that do not
    occur at all get an idf of zero, too.

    :param dtm: sparse document-term-matrix of size NxM (N rows, M is vocab size) with raw term counts.
    :param smooth_log: smoothing constant inside log()
    :param smooth_df: smoothing constant to add to document frequency
    :return: NumPy array of size M (vocab size) with inverse document frequency for each term in the vocab
    """
    if smooth_log < 0 or smooth_df < 0:
        raise ValueError('`smooth_log` and `smooth_df` must be non-negative')

    n_docs = dtm.n_rows
    df = doc_frequencies(dtm) + smooth_df
    x = np.divide(n_docs, df, out=np.zeros(len(df), dtype=float), where=df > 0)

    with np.errstate(divide='ignore'):
        res = np.log(smooth_log + x)

    res[~np.isfinite(res)] = 0
    return np.maximum(res, 0)


def tfidf(dtm: SparseDTM, smooth_log: float = 0, smooth_df: float = 0) -> csr_matrix:
    """
    Calculate tfidf (term frequency inverse document frequency) matrix from raw count document-term-matrix `dtm` with
    matrix multiplication ``tf * diag(idf)``, where `tf` is the term frequency matrix
    :func:`~tmcompound.bow.bow_stats.tf_proportions` and ``idf`` is the inverse document frequency vector
    :func:`~tmcompound.bow.bow_stats.idf`.

    :param dtm: sparse document-term-matrix of size NxM (N rows, M is vocab size) with raw term counts
    :param smooth_log: smoothing constant inside log() for idf
    :param smooth_df: smoothing constant to add to document frequency for idf
    :return: sparse tfidf matrix of size NxM in CSR format
    """
    if 0 in dtm.shape:
        return csr_matrix(dtm.shape, dtype=float)

    tf_mat = tf_proportions(dtm)
    idf_vec = idf(dtm, smooth_log=smooth_log, smooth_df=smooth_df)

    return csr_matrix(tf_mat @ diags(idf_vec))


def mean_tfidf(dtm: SparseDTM, smooth_log: float = 0, smooth_df: float = 0) -> np.ndarray:
    """
    Calculate the mean tfidf value of each term across the rows that contain it.

    :param dtm: sparse document-term-matrix of size NxM (N rows, M is vocab size) with raw term counts
    :param smooth_log: smoothing constant inside log() for idf
    :param smooth_df: smoothing constant to add to document frequency for idf
    :return: NumPy array of size M (vocab size) with mean tfidf per term
    """
    sums = np.asarray(tfidf(dtm, smooth_log=smooth_log, smooth_df=smooth_df).sum(axis=0)).ravel()
    df = doc_frequencies(dtm)

    return np.divide(sums, df, out=np.zeros(len(sums), dtype=float), where=df > 0)


def term_correlation(dtm: SparseDTM, as_table: bool = False) -> pd.DataFrame:
    """
    Calculate the Pearson correlation coefficient between each pair of terms. Each term's column in `dtm` is treated
    as vector over all rows (with zeros where a term is absent).

    The diagonal is set to NaN, as is every entry that involves a term with constant counts across all rows (for which
    the correlation is undefined).

    :param dtm: sparse document-term-matrix of size NxM (N rows, M is vocab size) with raw term counts
    :param as_table: if True, return a "long" format dataframe with columns ``term1, term2, corr`` that contains each
                     pair only once (``term1 < term2``) and omits undefined entries
    :return: MxM dataframe with terms as row index and columns, or "long" format dataframe if `as_table` is True
    """
    _check_dtm(dtm)

    n, m = dtm.shape
    vocab = dtm.vocab
    corr = np.full((m, m), np.nan)

    if n > 1 and m > 0:
        mat = dtm.matrix.astype(float)
        s = np.asarray(mat.sum(axis=0)).ravel()
        xtx = (mat.T @ mat).toarray()
        cov = (xtx - np.outer(s, s) / n) / (n - 1)

        # columns with constant values have zero variance -> correlation undefined;
        # determine this exactly from min. and max. value instead of using the (inexact) variance
        csc = dtm.matrix.tocsc()
        colmax = csc.max(axis=0).toarray().ravel()
        colmin = csc.min(axis=0).toarray().ravel()
        defined = colmax != colmin

        std = np.sqrt(np.clip(np.diag(cov), 0, None))
        with np.errstate(divide='ignore', invalid='ignore'):
            vals = cov / np.outer(std, std)

        mask = np.outer(defined, defined)
        corr[mask] = np.clip(vals[mask], -1, 1)
        np.fill_diagonal(corr, np.nan)

    df = pd.DataFrame(corr, index=vocab, columns=vocab)

    if as_table:
        i, j = np.triu_indices(m, k=1)
        tbl = pd.DataFrame({'term1': np.array(vocab, dtype=object)[i],
                            'term2': np.array(vocab, dtype=object)[j],
                            'corr': corr[i, j]})
        return tbl.dropna(subset=['corr']).reset_index(drop=True)
    else:
        return df


def _group_indices(dtm: SparseDTM, groups: Union[None, Mapping[str, Any], Callable[[str], Any], Sequence]) \
        -> Tuple[np.ndarray, int]:
    """Map each row of `dtm` to a group index; return the group indices and the number of groups."""
    doc_labels = dtm.doc_labels

    if groups is None:
        return np.arange(len(doc_labels)), len(doc_labels)

    if isinstance(groups, Mapping):
        missing = [lbl for lbl in doc_labels if lbl not in groups]
        if missing:
            raise ValueError(f'no group given for row label(s) {", ".join(missing[:10])}')
        row_groups = [groups[lbl] for lbl in doc_labels]
    elif callable(groups):
        row_groups = [groups(lbl) for lbl in doc_labels]
    else:
        row_groups = list(groups)
        if len(row_groups) != len(doc_labels):
            raise ValueError('if `groups` is a sequence, its length must match the number of rows in `dtm`')

    group_ind = {}
    res = np.array([group_ind.setdefault(g, len(group_ind)) for g in row_groups], dtype=int)

    return res, len(group_ind)


def grouped_cooccurrence(dtm: SparseDTM, groups: Union[None, Mapping[str, Any], Callable[[str], Any], Sequence] = None,
                         as_table: bool = False) -> Union[Dict[Tuple[str, str], int], pd.DataFrame]:
    """
    Count term co-occurrences within groups of rows, e.g. documents grouped by their most probable topic. For each pair
    of distinct terms, count the number of groups in which both terms occur. A pair is counted only *once per group*,
    no matter how often the two terms occur in the group's rows.

    If `groups` is None, each row is its own group, which gives the number of rows in which both terms occur (the
    co-document frequency).

    :param dtm: sparse document-term-matrix of size NxM (N rows, M is vocab size) with raw term counts
    :param groups: None, a dict that maps row labels to group IDs, a function that takes a row label and returns a
                   group ID or a sequence of group IDs aligned with the rows of `dtm`
    :param as_table: if True, return a dataframe with columns ``term1, term2, cooc`` sorted by count in descending
                     order instead of a dict
    :return: dict that maps ``(term1, term2)`` tuples with ``term1 < term2`` to the number of groups in which both
             occur (only pairs with at least one co-occurrence are included), or a dataframe
    """
    _check_dtm(dtm)

    group_ind, n_groups = _group_indices(dtm, groups)
    vocab = dtm.vocab
    n_rows, n_terms = dtm.shape

    res = {}
    if n_rows > 0 and n_terms > 1:
        # indicator matrix groups x rows, multiplied with binary DTM -> groups x terms occurrence counts
        grp_mat = csr_matrix((np.ones(n_rows, dtype=int), (group_ind, np.arange(n_rows))), shape=(n_groups, n_rows))
        bin_dtm = (dtm.matrix > 0).astype(int)
        grp_occ = ((grp_mat @ bin_dtm) > 0).astype(int)

        cooc = (grp_occ.T @ grp_occ).tocoo()
        upper = (cooc.row < cooc.col) & (cooc.data > 0)
        pairs = sorted(zip(cooc.row[upper].tolist(), cooc.col[upper].tolist(), cooc.data[upper].tolist()))
        res = {(vocab[i], vocab[j]): int(n) for i, j, n in pairs}

    if as_table:
        tbl = pd.DataFrame([(t1, t2, n) for (t1, t2), n in res.items()], columns=['term1', 'term2', 'cooc'])
        return tbl.sort_values(by=['cooc', 'term1', 'term2'], ascending=[False, True, True]).reset_index(drop=True)
    else:
        return res


def sorted_terms(dtm: SparseDTM, values: Optional[csr_matrix] = None, lo_thresh: Optional[float] = 0,
                 top_n: Optional[int] = None, ascending: bool = False, as_table: bool = False) \
        -> Union[Dict[str, list], pd.DataFrame]:
    """
    For each row (i.e. document) in `dtm`, collect the terms with a value strictly greater than `lo_thresh`, sort them
    by value (ties by term) and optionally select only the top `top_n` terms.

    :param dtm: sparse document-term-matrix of size NxM
    :param values: optional sparse matrix of size NxM with values to sort by, e.g. the output of :func:`tfidf`; by
                   default, the raw counts in `dtm` are used
    :param lo_thresh: if not None, filter for values greater than `lo_thresh`
    :param top_n: if not None, select only the top `top_n` terms per row
    :param ascending: sorting direction
    :param as_table: if True, return a dataframe with columns ``doc, term, value``
    :return: dict mapping row labels to lists of ``(term, value)`` tuples or a dataframe if `as_table` is True
    """
    _check_dtm(dtm)

    if top_n is not None and top_n < 1:
        raise ValueError('`top_n` must be at least 1')

    if values is None:
        values = dtm.matrix
    else:
        if values.shape != dtm.shape:
            raise ValueError('shape of `values` must match shape of `dtm`')
        values = csr_matrix(values)

    vocab = np.array(dtm.vocab, dtype=object)
    res = {}
    for i, lbl in enumerate(dtm.doc_labels):
        row = values.getrow(i)
        row_vals = row.data
        row_terms = vocab[row.indices]

        if lo_thresh is not None:
            mask = row_vals > lo_thresh
            row_vals = row_vals[mask]
            row_terms = row_terms[mask]

        # lexsort: last key is primary
        order = np.lexsort((row_terms.astype(str), row_vals if ascending else -row_vals))
        if top_n is not None:
            order = order[:top_n]

        res[lbl] = [(t, v.item()) for t, v in zip(row_terms[order], row_vals[order])]

    if as_table:
        return pd.DataFrame([(lbl, t, v) for lbl, pairs in res.items() for t, v in pairs],
                            columns=['doc', 'term', 'value'])
    else:
        return res
