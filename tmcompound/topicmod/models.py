"""
Minimal interface for externally trained topic models and adapters for popular topic modeling packages.

A topic model is only queried, never trained here. The interface :class:`~TopicModel` exposes exactly what topic
assignment needs: the model's vocabulary, the posterior topic-term distribution and the posterior document-topic
distribution for new documents.
"""

from typing import Callable, Sequence, Union, Protocol, runtime_checkable

import numpy as np
from scipy.sparse import csr_matrix, issparse

from ..utils import as_chararray


@runtime_checkable
class TopicModel(Protocol):
    """
    Interface for a trained topic model with K topics and a vocabulary of size M.
    """

    #: vocabulary as 1D NumPy array of strings of length M
    vocab: np.ndarray

    def posterior_terms(self) -> np.ndarray:
        """
        Return the topic-term distribution as KxM array, i.e. the probability of each term given a topic.
        """
        ...

    def posterior_topics(self, dtm: csr_matrix) -> np.ndarray:
        """
        Return the document-topic distribution for the NxM count matrix `dtm`, whose columns are aligned with
        :attr:`vocab`, as NxK array.
        """
        ...


def _check_vocab_and_distrib(vocab, topic_word_distrib: np.ndarray) -> np.ndarray:
    if not isinstance(topic_word_distrib, np.ndarray) or topic_word_distrib.ndim != 2:
        raise ValueError('topic-word distribution must be a 2D NumPy array')

    vocab = as_chararray(vocab)
    if topic_word_distrib.shape[1] != len(vocab):
        raise ValueError(f'vocabulary size ({len(vocab)}) does not match number of columns in the topic-word '
                         f'distribution ({topic_word_distrib.shape[1]})')

    return vocab


class StaticTopicModel:
    """
    Topic model given by a precomputed topic-word distribution and a function that calculates the document-topic
    distribution for new documents, e.g. for a model loaded from disk.
    """

    def __init__(self, vocab: Union[Sequence[str], np.ndarray], topic_word_distrib: np.ndarray,
                 doc_topic_fn: Callable[[csr_matrix], np.ndarray]):
        """
        :param vocab: vocabulary of length M
        :param topic_word_distrib: topic-word distribution; shape KxM
        :param doc_topic_fn: function that takes an NxM sparse count matrix and returns an NxK document-topic
                             distribution
        """
        self.vocab = _check_vocab_and_distrib(vocab, topic_word_distrib)
        self._topic_word_distrib = topic_word_distrib
        self._doc_topic_fn = doc_topic_fn

    def posterior_terms(self) -> np.ndarray:
        return self._topic_word_distrib

    def posterior_topics(self, dtm: csr_matrix) -> np.ndarray:
        return np.asarray(self._doc_topic_fn(dtm))


class SklearnTopicModel:
    """
    Adapter for a fitted :class:`sklearn.decomposition.LatentDirichletAllocation` instance from the
    `scikit-learn package <https://scikit-learn.org/>`_.
    """

    def __init__(self, model, vocab: Union[Sequence[str], np.ndarray]):
        """
        :param model: fitted LatentDirichletAllocation instance
        :param vocab: vocabulary of the DTM that the model was fitted on
        """
        self.model = model
        self.vocab = _check_vocab_and_distrib(vocab, model.components_)

    def posterior_terms(self) -> np.ndarray:
        # sklearn's `components_` are unnormalized pseudo-counts
        return self.model.components_ / self.model.components_.sum(axis=1)[:, np.newaxis]

    def posterior_topics(self, dtm: csr_matrix) -> np.ndarray:
        if not issparse(dtm):
            dtm = csr_matrix(dtm)
        return self.model.transform(dtm)


class LdaTopicModel:
    """
    Adapter for a fitted :class:`lda.LDA` instance from the `lda package <https://lda.readthedocs.io/>`_.
    """

    def __init__(self, model, vocab: Union[Sequence[str], np.ndarray]):
        """
        :param model: fitted LDA instance
        :param vocab: vocabulary of the DTM that the model was fitted on
        """
        self.model = model
        self.vocab = _check_vocab_and_distrib(vocab, model.topic_word_)

    def posterior_terms(self) -> np.ndarray:
        return self.model.topic_word_

    def posterior_topics(self, dtm: csr_matrix) -> np.ndarray:
        # the lda package requires integer counts
        return self.model.transform(dtm.astype(np.int64))
