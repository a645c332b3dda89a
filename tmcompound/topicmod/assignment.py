"""
Assignment of documents to topics of an externally trained topic model.

Documents are given as rows of a :class:`~tmcompound.bow.dtm.SparseDTM`, which is projected onto the model's
vocabulary. Documents that contain no term of the model's vocabulary can't be assigned to any topic; for them an
explicit *undetermined* result is returned and the model is not queried at all.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.sparse import csr_matrix, coo_matrix

from ..bow.dtm import SparseDTM
from .model_stats import default_topic_labels
from .models import TopicModel


logger = logging.getLogger('tmcompound')


@dataclass(frozen=True)
class TopicAssignment:
    """
    Result of assigning a document to its most probable topic.

    For an *undetermined* assignment (the document contains no term of the model's vocabulary) `topic`, `label` and
    `distrib` are None and `prob` and `margin` are NaN.
    """
    doc: str
    topic: Optional[int]
    label: Optional[str]
    #: probability of the most probable topic
    prob: float
    #: difference between the probabilities of the most probable and the second most probable topic
    margin: float
    #: full topic distribution for this document
    distrib: Optional[np.ndarray] = field(default=None, compare=False, repr=False)

    @property
    def determined(self) -> bool:
        return self.topic is not None

    @classmethod
    def undetermined(cls, doc: str) -> 'TopicAssignment':
        return cls(doc=doc, topic=None, label=None, prob=np.nan, margin=np.nan, distrib=None)


def align_to_vocab(dtm: SparseDTM, vocab: Sequence[str]) -> Tuple[csr_matrix, np.ndarray]:
    """
    Project the counts in `dtm` onto the vocabulary `vocab` (e.g. the vocabulary of a trained topic model). Terms in
    `dtm` that are not in `vocab` are dropped, terms in `vocab` that are not in `dtm` get zero counts.

    :param dtm: sparse document-term-matrix of size NxM
    :param vocab: target vocabulary of size V
    :return: tuple with NxV sparse count matrix whose columns are aligned with `vocab` and an array of size N with the
             number of counts of known terms per row
    """
    vocab = list(vocab)
    vocab_ind = {t: i for i, t in enumerate(vocab)}

    if len(vocab_ind) != len(vocab):
        raise ValueError('`vocab` must not contain duplicates')

    # map each column in `dtm` to its column in the target vocabulary or -1 if unknown
    target_col = np.array([vocab_ind.get(t, -1) for t in dtm.vocab], dtype=int)

    coo = dtm.matrix.tocoo()
    known = target_col[coo.col] >= 0 if coo.nnz > 0 else np.zeros(0, dtype=bool)

    aligned = coo_matrix((coo.data[known], (coo.row[known], target_col[coo.col[known]])),
                         shape=(dtm.n_rows, len(vocab)), dtype=dtm.dtype).tocsr()
    n_known = np.asarray(aligned.sum(axis=1)).ravel()

    return aligned, n_known


def assign_topics(model: TopicModel, dtm: SparseDTM, topic_labels: Optional[Sequence[str]] = None) \
        -> List[TopicAssignment]:
    """
    Assign each row (document) in `dtm` to its most probable topic according to the topic model `model`. The confidence
    of each assignment is given as `margin`, the difference between the probabilities of the best and the second best
    topic (or the probability of the best topic if the model has only one topic).

    Rows that contain no term of the model's vocabulary produce an undetermined result (see
    :meth:`TopicAssignment.undetermined`).

    :param model: trained topic model implementing the :class:`~tmcompound.topicmod.models.TopicModel` interface
    :param dtm: sparse document-term-matrix with documents to assign
    :param topic_labels: optional human-readable topic labels of length K; by default ``topic_1, topic_2, ...``
    :return: list of topic assignments, one per row in `dtm` in the order of its row labels
    """
    topic_word = np.asarray(model.posterior_terms())
    if topic_word.ndim != 2:
        raise ValueError('posterior topic-term distribution of `model` must be a 2D array')

    n_topics = topic_word.shape[0]
    if topic_labels is None:
        topic_labels = default_topic_labels(n_topics)
    elif len(topic_labels) != n_topics:
        raise ValueError(f'number of topic labels ({len(topic_labels)}) must match number of topics ({n_topics})')

    aligned, n_known = align_to_vocab(dtm, model.vocab)
    determined = n_known > 0
    det_ind = np.flatnonzero(determined)

    if len(det_ind) < dtm.n_rows:
        logger.info(f'{dtm.n_rows - len(det_ind)} of {dtm.n_rows} documents contain no term from the model vocabulary')

    theta = None
    if len(det_ind) > 0:
        theta = np.asarray(model.posterior_topics(aligned[det_ind, :]))
        if theta.shape != (len(det_ind), n_topics):
            raise ValueError(f'posterior document-topic distribution of `model` has shape {theta.shape}, expected '
                             f'{(len(det_ind), n_topics)}')

    res = []
    theta_row = 0
    for lbl, is_det in zip(dtm.doc_labels, determined):
        if not is_det:
            res.append(TopicAssignment.undetermined(lbl))
            continue

        distrib = theta[theta_row]
        theta_row += 1

        order = np.argsort(-distrib, kind='stable')
        best = int(order[0])
        prob = float(distrib[best])
        margin = prob - float(distrib[order[1]]) if n_topics > 1 else prob

        res.append(TopicAssignment(doc=lbl, topic=best, label=topic_labels[best], prob=prob, margin=margin,
                                   distrib=distrib.copy()))

    return res


def assign_topics_table(model: TopicModel, dtm: SparseDTM, topic_labels: Optional[Sequence[str]] = None) \
        -> pd.DataFrame:
    """
    Same as :func:`assign_topics`, but return the results as dataframe with columns ``doc, topic, label, prob,
    margin``. The ``topic`` column has a nullable integer type; undetermined assignments have missing values (``<NA>``
    for ``topic`` and ``label``, NaN for ``prob`` and ``margin``).

    :param model: trained topic model implementing the :class:`~tmcompound.topicmod.models.TopicModel` interface
    :param dtm: sparse document-term-matrix with documents to assign
    :param topic_labels: optional human-readable topic labels of length K
    :return: dataframe with one row per row in `dtm`
    """
    assignments = assign_topics(model, dtm, topic_labels=topic_labels)

    return pd.DataFrame({
        'doc': [a.doc for a in assignments],
        'topic': pd.array([a.topic for a in assignments], dtype='Int64'),
        'label': pd.array([a.label for a in assignments], dtype='string'),
        'prob': np.array([a.prob for a in assignments], dtype=float),
        'margin': np.array([a.margin for a in assignments], dtype=float),
    })
