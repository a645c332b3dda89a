"""
Functions for creating a sparse document-term matrix (DTM) from a token stream or recoded terms, the
:class:`~SparseDTM` value type and some compatibility functions for pandas and Gensim.
"""

import logging
from collections import Counter
from typing import Union, List, Optional, Callable, Iterable, Dict, Mapping, Sequence, Tuple, Iterator, Collection

import numpy as np
import pandas as pd
from scipy.sparse import coo_matrix, csr_matrix, issparse

from .._common import DEFAULT_TERM_FIELD
from .._parallel import paralleltask, parallelexec
from ..tokenstream import grouping_key
from ..types import RecodedTerm, TokenOrTerm
from ..utils import as_chararray, empty_chararray, flatten_list, pickle_data, unpickle_file


logger = logging.getLogger('tmcompound')

TermSelector = Callable[[TokenOrTerm], Optional[str]]


#%% SparseDTM value type


class SparseDTM:
    """
    Immutable sparse document-term matrix with integer counts. Rows are identified by row labels (e.g. document IDs
    derived via a grouping key), columns by terms. Both row labels and vocabulary are kept sorted in ascending
    (lexicographic) order and zero counts are never stored, so that identical input always produces an identical
    matrix.

    None of the methods modify the matrix; all filter functions in :mod:`tmcompound.bow.filters` return new
    objects.
    """

    def __init__(self, matrix, doc_labels: Sequence[str], vocab: Sequence[str], dtype: Optional[str] = None):
        """
        Create a new sparse DTM from a (sparse or dense) 2D matrix `matrix` of shape NxM with non-negative integer
        counts, `doc_labels` of length N and `vocab` of length M. Rows and columns are re-ordered so that row labels
        and vocabulary are sorted.

        :param matrix: 2D array or sparse matrix with non-negative integer counts
        :param doc_labels: unique row labels (strings)
        :param vocab: unique terms (strings)
        :param dtype: optional data type for the stored counts; by default use the data type of `matrix`
        """
        if not issparse(matrix):
            matrix = np.asarray(matrix)
        if matrix.ndim != 2:
            raise ValueError('`matrix` must be a 2D array/matrix')

        doc_labels = as_chararray(doc_labels)
        vocab = as_chararray(vocab)

        if matrix.shape != (len(doc_labels), len(vocab)):
            raise ValueError(f'shape of `matrix` {matrix.shape} does not match number of row labels '
                             f'({len(doc_labels)}) and vocabulary size ({len(vocab)})')

        if len(set(doc_labels.tolist())) != len(doc_labels):
            raise ValueError('`doc_labels` must not contain duplicates')
        if len(set(vocab.tolist())) != len(vocab):
            raise ValueError('`vocab` must not contain duplicates')

        mat = csr_matrix(matrix, dtype=dtype or matrix.dtype)
        if not np.issubdtype(mat.dtype, np.integer):
            raise ValueError('`matrix` must contain integer counts')
        if mat.nnz > 0 and mat.data.min() < 0:
            raise ValueError('`matrix` must not contain negative counts')

        # sort rows and columns
        row_order = np.argsort(doc_labels, kind='stable')
        col_order = np.argsort(vocab, kind='stable')
        mat = mat[row_order, :][:, col_order]
        mat.eliminate_zeros()
        mat.sort_indices()

        self._mat = mat
        self._doc_labels = doc_labels[row_order]
        self._vocab = vocab[col_order]

    @classmethod
    def empty(cls, dtype: str = 'int32') -> 'SparseDTM':
        """Create an empty DTM with no rows and no columns."""
        return cls(csr_matrix((0, 0), dtype=dtype), empty_chararray(), empty_chararray())

    @classmethod
    def _from_sorted(cls, mat: csr_matrix, doc_labels: np.ndarray, vocab: np.ndarray) -> 'SparseDTM':
        """Internal constructor for already sorted labels and a canonical CSR matrix; skips all checks."""
        obj = cls.__new__(cls)
        mat.eliminate_zeros()
        mat.sort_indices()
        obj._mat = mat
        obj._doc_labels = doc_labels
        obj._vocab = vocab
        return obj

    @property
    def shape(self) -> Tuple[int, int]:
        return self._mat.shape

    @property
    def n_rows(self) -> int:
        return self._mat.shape[0]

    @property
    def n_terms(self) -> int:
        return self._mat.shape[1]

    @property
    def nnz(self) -> int:
        """Number of stored (i.e. non-zero) counts."""
        return self._mat.nnz

    @property
    def dtype(self) -> np.dtype:
        return self._mat.dtype

    @property
    def doc_labels(self) -> List[str]:
        """Sorted row labels."""
        return self._doc_labels.tolist()

    @property
    def vocab(self) -> List[str]:
        """Sorted vocabulary, i.e. column labels."""
        return self._vocab.tolist()

    @property
    def matrix(self) -> csr_matrix:
        """Copy of the counts as sparse matrix in CSR format."""
        return self._mat.copy()

    def is_empty(self) -> bool:
        return self._mat.nnz == 0

    def triples(self) -> Iterator[Tuple[str, str, int]]:
        """
        Enumerate all stored counts as ``(row label, term, count)`` triples in row-major order.
        """
        mat = self._mat
        for i in range(mat.shape[0]):
            row_lbl = str(self._doc_labels[i])
            for k in range(mat.indptr[i], mat.indptr[i+1]):
                yield row_lbl, str(self._vocab[mat.indices[k]]), int(mat.data[k])

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        """
        Convert to a nested dict ``{row label: {term: count}}``.
        """
        res = {}
        for row_lbl, term, n in self.triples():
            res.setdefault(row_lbl, {})[term] = n
        return res

    def to_dataframe(self) -> pd.DataFrame:
        """
        Convert to a dense pandas DataFrame with row labels as index and vocabulary as columns.

        .. warning:: This creates *dense* data, which may require a lot of memory.
        """
        return dtm_to_dataframe(self)

    def to_table(self) -> pd.DataFrame:
        """
        Convert to a "long" format dataframe with columns ``doc, term, count``, one row per stored count.
        """
        return pd.DataFrame(list(self.triples()), columns=['doc', 'term', 'count'])

    def subset(self, row_mask: Optional[np.ndarray] = None, col_mask: Optional[np.ndarray] = None,
               drop_empty_rows: bool = True) -> 'SparseDTM':
        """
        Create a new DTM that contains only the rows in boolean array `row_mask` and columns in boolean array
        `col_mask`. If `drop_empty_rows` is True, rows that don't contain any counts afterwards are dropped, too.

        :param row_mask: boolean array of length N (number of rows) or None to retain all rows
        :param col_mask: boolean array of length M (vocabulary size) or None to retain all columns
        :param drop_empty_rows: drop rows without any counts after selecting the columns
        :return: new SparseDTM object
        """
        if row_mask is None:
            row_mask = np.repeat(True, self.n_rows)
        else:
            row_mask = np.asarray(row_mask, dtype=bool)
            if row_mask.shape != (self.n_rows, ):
                raise ValueError('`row_mask` must be a boolean array of length `n_rows`')

        if col_mask is None:
            col_mask = np.repeat(True, self.n_terms)
        else:
            col_mask = np.asarray(col_mask, dtype=bool)
            if col_mask.shape != (self.n_terms, ):
                raise ValueError('`col_mask` must be a boolean array of length `n_terms`')

        mat = self._mat[np.flatnonzero(row_mask), :][:, np.flatnonzero(col_mask)]
        doc_labels = self._doc_labels[row_mask]
        vocab = self._vocab[col_mask]

        if drop_empty_rows and mat.shape[0] > 0:
            nonempty = np.diff(mat.indptr) > 0
            if not np.all(nonempty):
                mat = mat[np.flatnonzero(nonempty), :]
                doc_labels = doc_labels[nonempty]

        return SparseDTM._from_sorted(csr_matrix(mat), doc_labels, vocab)

    def __eq__(self, other):
        if not isinstance(other, SparseDTM):
            return NotImplemented
        # both matrices are in canonical CSR format, so comparing the underlying arrays is sufficient
        return self.shape == other.shape and \
            np.array_equal(self._doc_labels, other._doc_labels) and \
            np.array_equal(self._vocab, other._vocab) and \
            np.array_equal(self._mat.indptr, other._mat.indptr) and \
            np.array_equal(self._mat.indices, other._mat.indices) and \
            np.array_equal(self._mat.data, other._mat.data)

    def __hash__(self):
        return hash((tuple(self.doc_labels), tuple(self.vocab), self.nnz))

    def __len__(self):
        return self.n_rows

    def __repr__(self):
        return f'<SparseDTM [{self.n_rows} rows, {self.n_terms} terms, {self.nnz} non-zero counts]>'


#%% DTM creation


def _dtm_from_arrays(row_labels: np.ndarray, terms: np.ndarray, counts: np.ndarray, dtype: str) -> SparseDTM:
    """
    Create a SparseDTM from three parallel arrays of row labels, terms and counts. Duplicate ``(row label, term)``
    pairs are summed up.
    """
    if len(counts) == 0:
        return SparseDTM.empty(dtype=dtype)

    # `np.unique` returns sorted unique values and the indices into them -> these are row and column indices
    doc_labels, row_ind = np.unique(row_labels, return_inverse=True)
    vocab, col_ind = np.unique(terms, return_inverse=True)

    mat = coo_matrix((counts, (row_ind.ravel(), col_ind.ravel())), shape=(len(doc_labels), len(vocab)),
                     dtype=dtype).tocsr()   # sums up duplicates
    mat.sum_duplicates()

    return SparseDTM._from_sorted(mat, doc_labels, vocab)


def _check_label(x, what: str) -> str:
    if not isinstance(x, str):
        raise ValueError(f'{what} must be a string, got {x!r}')
    return x


def dtm_from_pairs(pairs: Iterable[Tuple[str, str]], dtype: str = 'int32') -> SparseDTM:
    """
    Create a sparse DTM from ``(row label, term)`` pairs, where each pair increments the respective count by one.

    :param pairs: iterable of ``(row label, term)`` string tuples
    :param dtype: data type of the counts
    :return: SparseDTM object
    """
    counts = Counter(pairs)

    if not counts:
        return SparseDTM.empty(dtype=dtype)

    row_labels = np.array([_check_label(r, 'row label') for r, _ in counts.keys()], dtype=str)
    terms = np.array([_check_label(t, 'term') for _, t in counts.keys()], dtype=str)
    data = np.fromiter(counts.values(), dtype=dtype, count=len(counts))

    return _dtm_from_arrays(row_labels, terms, data, dtype=dtype)


def combine_dtms(dtms: Sequence[SparseDTM], dtype: Optional[str] = None) -> SparseDTM:
    """
    Combine several (partial) DTMs into a single DTM by summing up the counts cell-wise. Row labels and terms that
    occur in several DTMs are merged, i.e. counts are added and never overwritten.

    :param dtms: sequence of SparseDTM objects
    :param dtype: data type of the result; by default use the data type of the first DTM
    :return: combined SparseDTM object
    """
    dtms = list(dtms)
    if not dtms:
        raise ValueError('`dtms` cannot be empty')

    dtype = dtype or dtms[0].dtype
    nonempty = [d for d in dtms if not d.is_empty()]

    if not nonempty:
        return SparseDTM.empty(dtype=dtype)

    row_labels = []
    terms = []
    counts = []
    for d in nonempty:
        coo = d._mat.tocoo()
        row_labels.append(d._doc_labels[coo.row])
        terms.append(d._vocab[coo.col])
        counts.append(coo.data)

    return _dtm_from_arrays(np.concatenate(row_labels), np.concatenate(terms), np.concatenate(counts).astype(dtype),
                            dtype=dtype)


#%% term selectors


def _default_term(t: TokenOrTerm) -> Optional[str]:
    return t.term if isinstance(t, RecodedTerm) else getattr(t, DEFAULT_TERM_FIELD)


def field_selector(field: str) -> TermSelector:
    """
    Create a term selector that returns the value of the field `field` of a token or recoded term.

    :param field: one of ``"term"`` (recoded terms only), ``"surface_form"``, ``"lemma"``, ``"pos_tag"``
    :return: term selector function
    """
    if field not in {'term', 'surface_form', 'lemma', 'pos_tag'}:
        raise ValueError('`field` must be one of "term", "surface_form", "lemma", "pos_tag"')

    if field == 'term':
        return _default_term

    def select_field(t):
        return getattr(t, field)

    return select_field


def pos_selector(pos_tags: Union[str, Collection[str]], field: str = 'lemma') -> TermSelector:
    """
    Create a term selector that returns the value of the field `field` only for tokens with a POS tag in `pos_tags`
    and None (i.e. "no term") for all other tokens, e.g. to count only nouns. Compound terms don't have a POS tag and
    are never selected.

    :param pos_tags: single POS tag or collection of POS tags
    :param field: token field to select for matching tokens
    :return: term selector function
    """
    if isinstance(pos_tags, str):
        pos_tags = {pos_tags}
    else:
        pos_tags = set(pos_tags)

    select_field = field_selector(field)

    def select_pos(t):
        return select_field(t) if t.pos_tag in pos_tags else None

    return select_pos


def compound_selector(t: TokenOrTerm) -> Optional[str]:
    """
    Term selector that returns the recoded term only for compound terms and None for everything else.
    """
    return t.term if isinstance(t, RecodedTerm) and t.is_compound else None


def _term_selectors(term: Union[None, str, TermSelector, Sequence[Union[str, TermSelector]]]) -> List[TermSelector]:
    if term is None:
        return [_default_term]
    elif isinstance(term, str):
        return [field_selector(term)]
    elif callable(term):
        return [term]
    else:
        term = list(term)
        if not term:
            raise ValueError('`term` must not be an empty sequence')
        return flatten_list(_term_selectors(t) for t in term)


#%% aggregation


def aggregate_terms(items: Union[Iterable[TokenOrTerm], Mapping[str, Sequence[TokenOrTerm]]],
                    key: Optional[Callable[[TokenOrTerm], str]] = None,
                    term: Union[None, str, TermSelector, Sequence[Union[str, TermSelector]]] = None,
                    max_workers: Optional[int] = None, dtype: str = 'int32') -> SparseDTM:
    """
    Aggregate a token stream or recoded terms to a sparse document-term matrix. For each item, the row label is
    determined by the grouping key function `key` and the term(s) by `term`. Each ``(row label, term)`` pair increments
    the respective count by one.

    `term` can be a field name (``"term"``, ``"surface_form"``, ``"lemma"`` or ``"pos_tag"``), a term selector
    function that returns a string or None, or a sequence of those. When several selectors are given, each one that
    returns a term for an item adds one count (e.g. counting noun lemmas *and* compound terms as separate columns).
    Selectors that return None or an empty string mark the term as absent, so it's skipped. Rows without any terms
    are not part of the result.

    Example::

        recoded = RecodingPipeline([candidates]).apply(tokens)
        dtm = aggregate_terms(recoded, key=grouping_key('document_id'),
                              term=[pos_selector('NOUN'), compound_selector])

    :param items: iterable of Token or RecodedTerm objects or dict that maps document IDs to such sequences (e.g. the
                  output of :func:`~tmcompound.recode.recode_ngrams`)
    :param key: grouping key function that returns the row label for an item; default: group by document ID
    :param term: term field name, term selector function or sequence of those; default: the recoded term for recoded
                 terms and the surface form for tokens
    :param max_workers: if given and larger than 1, build partial DTMs for chunks of rows in up to this number of worker
                        processes and combine them afterwards
    :param dtype: data type of the counts
    :return: SparseDTM object
    """
    key = key or grouping_key('document_id')
    term_fns = _term_selectors(term)

    if isinstance(items, Mapping):
        items = flatten_list(items.values())

    rows = {}
    for it in items:
        rows.setdefault(key(it), []).append(it)

    @parallelexec(collect_fn=combine_dtms)
    def _partial_dtm(chunk):
        pairs = ((row_lbl, t) for row_lbl, row_items in chunk.items()
                 for it in row_items
                 for t in (fn(it) for fn in term_fns) if t)
        return dtm_from_pairs(pairs, dtype=dtype)

    logger.info(f'aggregating terms for {len(rows)} rows')
    dtm = _partial_dtm(paralleltask(rows, max_workers=max_workers))
    logger.debug(f'generated {dtm!r}')

    return dtm


#%% conversion and I/O


def dtm_to_dataframe(dtm: SparseDTM) -> pd.DataFrame:
    """
    Convert a SparseDTM to a dense pandas DataFrame using the row labels as row index and the vocabulary as column
    names.

    :param dtm: SparseDTM object
    :return: pandas DataFrame
    """
    return pd.DataFrame(dtm.matrix.toarray(), index=dtm.doc_labels, columns=dtm.vocab)


def save_dtm(dtm: SparseDTM, picklefile: str) -> None:
    """
    Save a SparseDTM to a pickle file.

    :param dtm: SparseDTM object
    :param picklefile: target file path
    """
    pickle_data({'matrix': dtm.matrix, 'doc_labels': dtm.doc_labels, 'vocab': dtm.vocab}, picklefile)


def load_dtm(picklefile: str) -> SparseDTM:
    """
    Load a SparseDTM from a pickle file that was created with :func:`save_dtm`.

    .. warning:: Python pickle files may contain malicious code. You should only load pickle files from trusted sources.

    :param picklefile: pickle file path
    :return: SparseDTM object
    """
    data = unpickle_file(picklefile)
    return SparseDTM(data['matrix'], data['doc_labels'], data['vocab'])


#%% Gensim compatibility functions


def dtm_to_gensim_corpus(dtm: SparseDTM):
    """
    Convert a SparseDTM to a Gensim Corpus object.

    :param dtm: SparseDTM object
    :return: a Gensim :class:`gensim.matutils.Sparse2Corpus` object
    """
    import gensim

    # Gensim expects a terms x documents matrix in CSC format
    return gensim.matutils.Sparse2Corpus(dtm.matrix.transpose().tocsc())


def dtm_to_gensim_corpus_and_dict(dtm: SparseDTM, as_gensim_dictionary: bool = True):
    """
    Convert a SparseDTM to a Gensim Corpus object *and* a Gensim :class:`~gensim.corpora.dictionary.Dictionary` object
    or a Python :func:`dict` mapping column indices to terms.

    :param dtm: SparseDTM object
    :param as_gensim_dictionary: if True create Gensim :class:`~gensim.corpora.dictionary.Dictionary` from the
                                 vocabulary, else create Python :func:`dict`
    :return: a 2-tuple with (Corpus object, Gensim :class:`~gensim.corpora.dictionary.Dictionary` or
             Python :func:`dict`)
    """
    corpus = dtm_to_gensim_corpus(dtm)

    # vocabulary array has to be converted to dict with index -> word mapping
    id2word = dict(zip(range(dtm.n_terms), dtm.vocab))

    if as_gensim_dictionary:
        import gensim
        return corpus, gensim.corpora.dictionary.Dictionary.from_corpus(corpus, id2word)
    else:
        return corpus, id2word
