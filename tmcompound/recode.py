"""
Recoding of token streams: replace runs of subsequent tokens that match a compound candidate (a multi-word expression
like "new york city") by a single compound term.

Matching is *longest match first*: at each position of a document, candidates are tried from the longest to the
shortest length, so that a shorter prefix of a valid compound never pre-empts the compound itself. Matched tokens are
consumed and the scan continues directly after the match. Several candidate lists can be applied in successive passes
with a :class:`~RecodingPipeline`; compounds created in an earlier pass are never split or re-matched in later passes.

Example::

    tokens = [Token('d1', 1, 1, 0, 'new'), Token('d1', 1, 1, 1, 'york'), Token('d1', 1, 1, 2, 'city'),
              Token('d1', 1, 1, 3, 'is'), Token('d1', 1, 1, 4, 'big')]
    recoded = recode_ngrams(tokens, compound_candidates(['new york', 'new york city']))
    [t.term for t in recoded['d1']]
    # ['new york city', 'is', 'big']
"""

import logging
from dataclasses import dataclass
from typing import Union, List, Optional, Callable, Iterable, Dict, Mapping, Sequence, Tuple

import pandas as pd

from ._common import DEFAULT_COMPOUND_GLUE, DEFAULT_TERM_FIELD
from ._parallel import paralleltask, parallelexec
from .tokenstream import partition_by_document
from .types import Token, CompoundCandidate, RecodedTerm, TokenOrTerm
from .utils import merge_dicts, flatten_list


logger = logging.getLogger('tmcompound')

CandidatesLookup = List[Tuple[int, Dict[Tuple[str, ...], CompoundCandidate]]]


#%% compound candidates


def compound_candidates(phrases: Iterable[Union[str, Sequence[str], CompoundCandidate]], sep: Optional[str] = None,
                        drop_short: bool = False) -> List[CompoundCandidate]:
    """
    Create a list of unique :class:`~tmcompound.types.CompoundCandidate` objects from `phrases`. Each phrase can be
    given as string, which is split by `sep` (any whitespace by default), as sequence of strings or as an already
    existing CompoundCandidate object.

    Phrases that consist of a single element are rejected by raising a ``ValueError`` unless `drop_short` is True, in
    which case they're silently dropped.

    :param phrases: iterable of phrases
    :param sep: separator used for splitting phrases given as string; None means splitting by any whitespace
    :param drop_short: if True, drop phrases with less than two elements instead of raising an error
    :return: list of unique compound candidates in order of first appearance in `phrases`
    """
    if isinstance(phrases, str):
        raise ValueError('`phrases` must be an iterable of phrases, not a single string')

    res = []
    seen = set()
    for i, p in enumerate(phrases):
        if isinstance(p, CompoundCandidate):
            cand = p
        else:
            elems = tuple(p.split(sep)) if isinstance(p, str) else tuple(p)

            if len(elems) < 2:
                if drop_short:
                    logger.debug(f'dropping compound candidate #{i} {p!r} with less than two elements')
                    continue
                raise ValueError(f'compound candidate #{i} {p!r} must consist of at least two elements')

            cand = CompoundCandidate(elems, len(elems))

        if cand not in seen:
            seen.add(cand)
            res.append(cand)

    return res


def _candidates_lookup(candidates: Iterable[CompoundCandidate], ignore_case: bool) -> CandidatesLookup:
    """
    Create a lookup structure for matching: a list of ``(length, phrase -> candidate mapping)`` tuples sorted by
    length in descending order. Within each length, candidates are inserted in lexicographic order, so when two
    candidates collide under the case policy, the lexicographically first one wins.
    """
    by_length = {}
    for cand in sorted(candidates, key=lambda c: (-c.length, c.phrase)):
        key = tuple(x.lower() for x in cand.phrase) if ignore_case else cand.phrase
        by_length.setdefault(cand.length, {}).setdefault(key, cand)

    return sorted(by_length.items(), key=lambda x: x[0], reverse=True)


#%% recoding


def _term_selector(select: Union[str, Callable[[Token], Optional[str]]]) -> Callable[[Token], Optional[str]]:
    if callable(select):
        return select
    elif isinstance(select, str):
        if select not in {'surface_form', 'lemma'}:
            raise ValueError('`select` must be either "surface_form", "lemma" or a callable')
        return lambda t: getattr(t, select)
    else:
        raise ValueError('`select` must be either "surface_form", "lemma" or a callable')


def _as_units(tokens: Iterable[TokenOrTerm], select_fn: Callable[[Token], Optional[str]]) -> List[RecodedTerm]:
    """Turn tokens into singleton recoded terms; already recoded terms are passed through unchanged."""
    units = []
    for t in tokens:
        if isinstance(t, RecodedTerm):
            units.append(t)
        else:
            units.append(RecodedTerm(term=select_fn(t), tokens=(t, )))
    return units


def _recode_units(units: List[RecodedTerm], lookup: CandidatesLookup, ignore_case: bool, glue: str) \
        -> List[RecodedTerm]:
    """
    Longest-match-first recoding of the recoded terms `units` of a single document.
    """
    n = len(units)

    # comparable texts; compounds from previous passes and terms without text never take part in a match
    texts = []
    for u in units:
        if u.is_compound or u.term is None:
            texts.append(None)
        else:
            texts.append(u.term.lower() if ignore_case else u.term)

    res = []
    i = 0
    while i < n:
        match_len = 0
        if texts[i] is not None:
            for length, phrases in lookup:
                if i + length > n:      # candidate is longer than the rest of the document
                    continue
                window = tuple(texts[i:i + length])
                if None in window:
                    continue
                if window in phrases:
                    match_len = length
                    break

        if match_len:
            span = units[i:i + match_len]
            res.append(RecodedTerm(term=glue.join(u.term for u in span),
                                   tokens=tuple(flatten_list(u.tokens for u in span))))
            i += match_len
        else:
            res.append(units[i])
            i += 1

    return res


def recode_ngrams(tokens: Union[Iterable[TokenOrTerm], Mapping[str, Sequence[TokenOrTerm]]],
                  candidates: Iterable[Union[str, Sequence[str], CompoundCandidate]],
                  select: Union[str, Callable[[Token], Optional[str]]] = DEFAULT_TERM_FIELD,
                  ignore_case: bool = False, glue: str = DEFAULT_COMPOUND_GLUE,
                  max_workers: Optional[int] = None, validate: bool = True) -> Dict[str, List[RecodedTerm]]:
    """
    Recode a token stream by replacing the longest matching runs of subsequent tokens with compound terms from
    `candidates`. Each document's output covers every original position exactly once, either as part of a compound
    term or as single term.

    The text of each token that is compared against the candidates is determined by `select`, which is either the name
    of a token field (``"surface_form"`` or ``"lemma"``) or a function that takes a Token and returns a string (or
    None, which never matches). Single tokens that are not part of a compound retain this text unchanged as term.
    Compound terms are formed by joining the *selected* texts of the matched tokens with `glue`. So with
    ``select="lemma"``, a compound's term joins the lemmata and not the surface forms; the original surface forms are
    always available via the compound's `tokens`.

    Tokens can also be already recoded terms (output of a previous call). In this case, the previously formed compounds
    are left as they are and are never part of a new match.

    :param tokens: token stream as iterable of Token or RecodedTerm objects or as dict that maps document IDs to such
                   token sequences
    :param candidates: compound candidates as CompoundCandidate objects, strings (split by whitespace) or sequences
                       of strings; see :func:`compound_candidates`
    :param select: token field or function that selects the text that is compared against the candidates
    :param ignore_case: if True, match case-insensitively
    :param glue: string used for joining the texts of the matched tokens
    :param max_workers: if given and larger than 1, distribute documents to up to this number of worker processes
    :param validate: if True, check that positions are strictly increasing within each document
    :return: dict mapping document IDs (in order of first appearance) to lists of recoded terms
    """
    if not isinstance(glue, str):
        raise ValueError('`glue` must be a string')

    select_fn = _term_selector(select)
    candidates = compound_candidates(candidates)
    lookup = _candidates_lookup(candidates, ignore_case=ignore_case)

    if isinstance(tokens, Mapping):
        docs = {}
        for doc_id, doc_tokens in tokens.items():
            doc_tokens = list(doc_tokens)
            if validate:
                partition_by_document(doc_tokens, validate=True)
            docs[doc_id] = doc_tokens
    else:
        docs = partition_by_document(tokens, validate=validate)

    @parallelexec(collect_fn=merge_dicts)
    def _recode(chunk):
        return {doc_id: _recode_units(_as_units(doc_tokens, select_fn), lookup, ignore_case, glue)
                for doc_id, doc_tokens in chunk.items()}

    logger.info(f'recoding {len(docs)} documents using {len(candidates)} compound candidates')
    res = _recode(paralleltask(docs, max_workers=max_workers))

    return {doc_id: res[doc_id] for doc_id in docs}   # restore document order


#%% recoding pipeline


@dataclass(frozen=True)
class RecodingStage:
    """
    A single recoding pass with a list of compound candidates and a case matching policy.
    """
    candidates: Tuple[CompoundCandidate, ...]
    ignore_case: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'candidates', tuple(compound_candidates(self.candidates)))


class RecodingPipeline:
    """
    An explicit, ordered list of recoding passes (:class:`~RecodingStage` objects). Each stage is applied with the
    longest-match-first rule to the output of the previous stage. Compounds formed in an earlier stage are atomic in
    all later stages.

    Example::

        pipe = RecodingPipeline([keyword_candidates, noun_phrase_candidates], select='lemma')
        recoded = pipe.apply(tokens)
    """

    def __init__(self, stages: Iterable[Union[RecodingStage, Iterable[Union[str, Sequence[str], CompoundCandidate]]]],
                 select: Union[str, Callable[[Token], Optional[str]]] = DEFAULT_TERM_FIELD,
                 glue: str = DEFAULT_COMPOUND_GLUE):
        """
        Create a recoding pipeline.

        :param stages: sequence of RecodingStage objects or candidate lists (which are converted to RecodingStage
                       objects with case-sensitive matching)
        :param select: token field or function that selects the text that is compared against the candidates
        :param glue: string used for joining the texts of the matched tokens
        """
        self.stages: Tuple[RecodingStage, ...] = tuple(s if isinstance(s, RecodingStage) else RecodingStage(s)
                                                       for s in stages)
        self.select = select
        self.glue = glue

        _term_selector(select)   # check `select` early

    def __repr__(self):
        return f'<RecodingPipeline [{len(self.stages)} stages, select={self.select!r}, glue={self.glue!r}]>'

    def __len__(self):
        return len(self.stages)

    def apply(self, tokens: Union[Iterable[TokenOrTerm], Mapping[str, Sequence[TokenOrTerm]]],
              max_workers: Optional[int] = None) -> Dict[str, List[RecodedTerm]]:
        """
        Apply all recoding stages in order to the token stream `tokens`.

        :param tokens: token stream as iterable of Token objects or as dict that maps document IDs to token sequences
        :param max_workers: if given and larger than 1, distribute documents to up to this number of worker processes
        :return: dict mapping document IDs (in order of first appearance) to lists of recoded terms
        """
        docs = recode_ngrams(tokens, [], select=self.select, glue=self.glue, validate=True)

        for i, stage in enumerate(self.stages):
            logger.debug(f'applying recoding stage {i+1}/{len(self.stages)} with {len(stage.candidates)} candidates')
            docs = recode_ngrams(docs, stage.candidates, select=self.select, ignore_case=stage.ignore_case,
                                 glue=self.glue, max_workers=max_workers, validate=False)

            if logger.isEnabledFor(logging.INFO):
                n_comp = sum(t.is_compound for doc_terms in docs.values() for t in doc_terms)
                logger.info(f'{n_comp} compound terms after recoding stage {i+1}')

        return docs


def recoded_terms_table(recoded: Mapping[str, Sequence[RecodedTerm]]) -> pd.DataFrame:
    """
    Generate a dataframe from the output of :func:`recode_ngrams` or :meth:`RecodingPipeline.apply` with one row per
    recoded term and columns ``doc, start, stop, term, is_compound``.

    :param recoded: dict mapping document IDs to lists of recoded terms
    :return: dataframe
    """
    rows = [(doc_id, t.start, t.stop, t.term, t.is_compound)
            for doc_id, doc_terms in recoded.items() for t in doc_terms]
    return pd.DataFrame(rows, columns=['doc', 'start', 'stop', 'term', 'is_compound'])
