"""
Common statistics and tools for externally trained topic models: most probable terms per topic, terms above a
probability threshold and topic labels derived from top terms.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .._common import DEFAULT_TOPIC_NAME_FMT
from ..utils import as_chararray, empty_chararray
from .models import TopicModel


@dataclass(frozen=True)
class TopicTerms:
    """Terms of a topic with a posterior probability above a threshold, sorted by probability in descending order."""
    topic: int
    label: str
    terms: Tuple[str, ...]
    probs: Tuple[float, ...]
    #: False if fewer than the requested minimum number of terms passed the probability threshold
    complete: bool


def default_topic_labels(n_topics: int, fmt: str = DEFAULT_TOPIC_NAME_FMT) -> List[str]:
    """
    Generate topic labels ``topic_1, topic_2, ...`` or using another format string `fmt` with placeholders ``{i0}``
    (zero-based topic index) and ``{i1}`` (one-based topic index).
    """
    return [fmt.format(i0=i, i1=i+1) for i in range(n_topics)]


def _distrib_and_vocab(model_or_distrib: Union[TopicModel, np.ndarray], vocab: Optional[Sequence[str]]) \
        -> Tuple[np.ndarray, np.ndarray]:
    if isinstance(model_or_distrib, TopicModel):
        topic_word_distrib = np.asarray(model_or_distrib.posterior_terms())
        if vocab is None:
            vocab = model_or_distrib.vocab
    else:
        topic_word_distrib = model_or_distrib

    if not isinstance(topic_word_distrib, np.ndarray) or topic_word_distrib.ndim != 2:
        raise ValueError('topic-word distribution must be a 2D NumPy array')

    if vocab is None:
        raise ValueError('`vocab` must be given when passing a topic-word distribution')

    vocab = as_chararray(vocab)
    if topic_word_distrib.shape[1] != len(vocab):
        raise ValueError('shapes of provided topic-word distribution and `vocab` do not match (vocab sizes differ)')

    return topic_word_distrib, vocab


def top_words_for_topics(topic_word_distrib: np.ndarray, top_n: Optional[int] = None,
                         vocab: Optional[np.ndarray] = None, return_prob: bool = False):
    """
    Generate sorted list of `top_n` words (or word indices) per topic in topic-word distribution `topic_word_distrib`.
    Words with equal probability are ordered by their position in the vocabulary.

    :param topic_word_distrib: topic-word distribution; shape KxM, where K is number of topics, M is vocabulary size
    :param top_n: number of top words (according to probability given topic) to select per topic; if None return full
                  sorted lists of words
    :param vocab: vocabulary array of length M; if None, return word indices instead of word strings
    :param return_prob: if True, also return sorted arrays of word probabilities given topic for each topic
    :return: list of length K consisting of sorted arrays of most probable words; arrays have length `top_n` or M
             (if `top_n` is None); if `return_prob` is True another list of sorted arrays of word probabilities given
             topic for each topic is returned
    """
    if not isinstance(topic_word_distrib, np.ndarray) or topic_word_distrib.ndim != 2:
        raise ValueError('`topic_word_distrib` must be a 2D NumPy array')

    if len(topic_word_distrib) == 0:
        raise ValueError('`topic_word_distrib` cannot be empty')

    if vocab is not None:
        vocab = as_chararray(vocab)

        if len(vocab) == 0:
            raise ValueError('`vocab` cannot be empty')

        if topic_word_distrib.shape[1] != len(vocab):
            raise ValueError('shapes of provided `topic_word_distrib` and `vocab` do not match (vocab sizes differ)')

    n_vocab = topic_word_distrib.shape[1]

    if top_n is None:
        top_n = n_vocab

    if top_n < 1:
        raise ValueError('`top_n` must be at least 1')
    elif top_n > n_vocab:
        raise ValueError('`top_n` cannot be larger than vocab size')

    topic_words = []
    topic_probs = []

    for topic in topic_word_distrib:
        sorter_arr = np.argsort(-topic, kind='stable')[:top_n]

        if vocab is None:
            topic_words.append(sorter_arr)
        else:
            topic_words.append(vocab[sorter_arr])

        if return_prob:
            topic_probs.append(topic[sorter_arr])

    if return_prob:
        return topic_words, topic_probs
    else:
        return topic_words


def topic_terms(model_or_distrib: Union[TopicModel, np.ndarray], vocab: Optional[Sequence[str]] = None,
                min_prob: float = 0.0, min_terms: int = 1, topic_labels: Optional[Sequence[str]] = None) \
        -> List[TopicTerms]:
    """
    For each topic, retrieve the terms whose posterior probability given the topic is strictly above `min_prob`,
    sorted by probability in descending order (ties by vocabulary order).

    If fewer than `min_terms` terms pass the threshold, only those terms are returned (possibly none) and the result
    for that topic is marked with ``complete=False``. Terms below the threshold are never added to fill up the list.

    :param model_or_distrib: trained topic model implementing the :class:`~tmcompound.topicmod.models.TopicModel`
                             interface or a KxM topic-word distribution
    :param vocab: vocabulary of length M; required if a topic-word distribution is passed, otherwise overrides the
                  model's vocabulary
    :param min_prob: probability threshold
    :param min_terms: minimum number of terms expected per topic
    :param topic_labels: optional topic labels of length K; by default ``topic_1, topic_2, ...``
    :return: list of :class:`TopicTerms` of length K
    """
    if min_terms < 0:
        raise ValueError('`min_terms` must be non-negative')

    topic_word_distrib, vocab = _distrib_and_vocab(model_or_distrib, vocab)
    n_topics = topic_word_distrib.shape[0]

    if topic_labels is None:
        topic_labels = default_topic_labels(n_topics)
    elif len(topic_labels) != n_topics:
        raise ValueError(f'number of topic labels ({len(topic_labels)}) must match number of topics ({n_topics})')

    res = []
    for k, (lbl, topic) in enumerate(zip(topic_labels, topic_word_distrib)):
        order = np.argsort(-topic, kind='stable')
        order = order[topic[order] > min_prob]

        res.append(TopicTerms(topic=k, label=lbl,
                              terms=tuple(str(t) for t in vocab[order]),
                              probs=tuple(float(p) for p in topic[order]),
                              complete=len(order) >= min_terms))

    return res


def topic_terms_table(model_or_distrib: Union[TopicModel, np.ndarray], vocab: Optional[Sequence[str]] = None,
                      min_prob: float = 0.0, min_terms: int = 1, topic_labels: Optional[Sequence[str]] = None) \
        -> pd.DataFrame:
    """
    Same as :func:`topic_terms`, but return the results as dataframe with columns ``topic, label, rank, term, prob``.
    Topics without any term above `min_prob` don't appear in the table.
    """
    rows = [(tt.topic, tt.label, rank, term, prob)
            for tt in topic_terms(model_or_distrib, vocab=vocab, min_prob=min_prob, min_terms=min_terms,
                                  topic_labels=topic_labels)
            for rank, (term, prob) in enumerate(zip(tt.terms, tt.probs), 1)]

    return pd.DataFrame(rows, columns=['topic', 'label', 'rank', 'term', 'prob'])


def topic_labels_from_top_terms(model_or_distrib: Union[TopicModel, np.ndarray], vocab: Optional[Sequence[str]] = None,
                                n_terms: Optional[int] = None, labels_glue: str = '_',
                                labels_format: str = '{i1}_{topterms}') -> np.ndarray:
    """
    Generate *unique* topic labels derived from the most probable terms of each topic. Specify the number of top terms
    in the label with `n_terms`. If `n_terms` is None, a minimum number of terms will be used to create unique labels
    for each topic. Topic labels are formed by joining the top terms with `labels_glue` and formatting them with
    `labels_format`. Placeholders in `labels_format` are ``"{i0}"`` (zero-based topic index), ``"{i1}"`` (one-based
    topic index) and ``"{topterms}"`` (top terms glued with `labels_glue`).

    :param model_or_distrib: trained topic model or a KxM topic-word distribution
    :param vocab: vocabulary of length M; required if a topic-word distribution is passed
    :param n_terms: number of terms to be used to create labels
    :param labels_glue: string to join the top terms
    :param labels_format: final topic labels format string
    :return: NumPy array of topic labels; length is K
    """
    topic_word_distrib, vocab = _distrib_and_vocab(model_or_distrib, vocab)

    if n_terms is None:
        n_terms = range(1, len(vocab)+1)
    else:
        if not 1 <= n_terms <= len(vocab):
            raise ValueError('`n_terms` must be in range [1, %d]' % len(vocab))

        n_terms = range(n_terms, n_terms+1)

    top_terms = [tuple(ts) for ts in top_words_for_topics(topic_word_distrib, vocab=vocab)] \
        if len(topic_word_distrib) > 0 else []

    n_top = []
    for n in n_terms:
        n_top = [ts[:n] for ts in top_terms]
        if len(n_top) == len(set(n_top)):   # we have a list of unique term sequences
            break

    topic_labels = [labels_format.format(i0=i, i1=i+1, topterms=labels_glue.join(ts))
                    for i, ts in enumerate(n_top)]

    if len(topic_labels) != len(set(topic_labels)):
        raise ValueError('generated labels are not unique')

    return np.array(topic_labels) if topic_labels else empty_chararray()
