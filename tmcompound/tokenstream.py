"""
Functions for the token stream model: converting annotated token records to :class:`~tmcompound.types.Token` objects,
validating token streams, partitioning them by document and deriving grouping keys that define the rows of a
document-term matrix.

A token stream is an ordered sequence of annotated tokens, e.g. the output of a tagger / lemmatizer, which contains
the fields ``document_id, paragraph_id, sentence_id, position, surface_form, lemma, pos_tag`` for each token.
"""

import logging
import math
from typing import Union, List, Any, Optional, Callable, Iterable, Dict, Mapping, Sequence

import pandas as pd

from ._common import DEFAULT_KEY_GLUE, GROUPING_LEVELS, REQUIRED_TOKEN_FIELDS, OPTIONAL_TOKEN_FIELDS
from .types import Token, TokenOrTerm


logger = logging.getLogger('tmcompound')


#%% conversion of token records


def _is_missing(x: Any) -> bool:
    return x is None or x is pd.NA or (isinstance(x, float) and math.isnan(x))


def token_from_record(rec: Union[Token, Mapping[str, Any]], index: Optional[int] = None) -> Token:
    """
    Convert a single token record `rec` given as mapping (e.g. a dict) to a :class:`~tmcompound.types.Token` object.
    Missing values (None or NaN) are only allowed for the optional fields ``lemma`` and ``pos_tag``.

    :param rec: token record as mapping or Token object (which is returned as-is, since Token objects are always
                valid)
    :param index: optional index of the record in the input stream, used in error messages
    :return: Token object
    """
    where = f'token record #{index}' if index is not None else 'token record'

    if isinstance(rec, Token):
        return rec
    elif not isinstance(rec, Mapping):
        raise ValueError(f'{where} must be a Token object or a mapping, got {type(rec)}: {rec!r}')

    missing = [f for f in REQUIRED_TOKEN_FIELDS if _is_missing(rec.get(f))]
    if missing:
        raise ValueError(f'{where} is missing required field(s) {", ".join(missing)}: {rec!r}')

    opt = {f: None if _is_missing(rec.get(f)) else rec.get(f) for f in OPTIONAL_TOKEN_FIELDS}

    # type checks happen in Token
    try:
        return Token(document_id=str(rec['document_id']),
                     paragraph_id=rec['paragraph_id'],
                     sentence_id=rec['sentence_id'],
                     position=rec['position'],
                     surface_form=rec['surface_form'],
                     **opt)
    except ValueError as exc:
        raise ValueError(f'invalid {where}: {exc}') from exc


def tokens_from_records(records: Iterable[Union[Token, Mapping[str, Any]]], validate: bool = True) -> List[Token]:
    """
    Convert a sequence of token records (mappings like dicts or Token objects) to a list of
    :class:`~tmcompound.types.Token` objects.

    :param records: iterable of token records
    :param validate: if True, additionally check that positions are strictly increasing within each document
    :return: list of Token objects in the same order as `records`
    """
    tokens = [token_from_record(rec, i) for i, rec in enumerate(records)]

    if validate:
        validate_tokens(tokens)

    return tokens


def tokens_from_table(tokens: pd.DataFrame, validate: bool = True) -> List[Token]:
    """
    Convert a dataframe with one token per row to a list of :class:`~tmcompound.types.Token` objects. The dataframe
    must contain the columns ``document_id, paragraph_id, sentence_id, position, surface_form``; the columns ``lemma``
    and ``pos_tag`` are optional. Additional columns are ignored.

    :param tokens: dataframe with token records
    :param validate: if True, additionally check that positions are strictly increasing within each document
    :return: list of Token objects in the same order as the rows in `tokens`
    """
    missing_cols = [c for c in REQUIRED_TOKEN_FIELDS if c not in tokens.columns]
    if missing_cols:
        raise ValueError(f'`tokens` dataframe is missing required column(s) {", ".join(missing_cols)}')

    cols = [c for c in REQUIRED_TOKEN_FIELDS + OPTIONAL_TOKEN_FIELDS if c in tokens.columns]
    records = tokens[cols].astype(object).to_dict('records')

    return tokens_from_records(records, validate=validate)


def tokens_table(tokens: Iterable[Token]) -> pd.DataFrame:
    """
    Generate a dataframe with one row per token in `tokens` and columns for all token fields.

    :param tokens: iterable of Token objects
    :return: dataframe with columns ``document_id, paragraph_id, sentence_id, position, surface_form, lemma, pos_tag``
    """
    cols = REQUIRED_TOKEN_FIELDS + OPTIONAL_TOKEN_FIELDS
    return pd.DataFrame([[getattr(t, c) for c in cols] for t in tokens], columns=list(cols))


#%% validation and partitioning


def validate_tokens(tokens: Iterable[TokenOrTerm]) -> None:
    """
    Check that the positions of the tokens in `tokens` are strictly increasing within each document. Raises a
    ``ValueError`` identifying the offending token otherwise.

    :param tokens: iterable of Token or RecodedTerm objects
    """
    partition_by_document(tokens, validate=True)


def partition_by_document(tokens: Iterable[TokenOrTerm], validate: bool = True) -> Dict[str, List[TokenOrTerm]]:
    """
    Partition a token stream by document ID. Documents are ordered by first appearance in `tokens`, tokens within a
    document retain their order in the stream.

    :param tokens: iterable of Token or RecodedTerm objects
    :param validate: if True, raise a ``ValueError`` if positions are not strictly increasing within a document
    :return: dict mapping document ID to list of tokens
    """
    docs = {}
    for i, t in enumerate(tokens):
        doc = docs.setdefault(t.document_id, [])

        if validate and doc and t.position <= doc[-1].position:
            raise ValueError(f'positions must be strictly increasing within a document, but token #{i} in document '
                             f'"{t.document_id}" has position {t.position} following position {doc[-1].position}: '
                             f'{t!r}')

        doc.append(t)

    return docs


#%% grouping keys


def grouping_key(by: Union[str, Sequence[str]] = 'document_id', glue: str = DEFAULT_KEY_GLUE) \
        -> Callable[[TokenOrTerm], str]:
    """
    Create a function that derives a row label from a token (or recoded term) by combining one or more of the grouping
    levels ``document_id, paragraph_id, sentence_id``. A single level produces that field's value as string, e.g.
    ``"doc1"``, several levels are joined by `glue`, e.g. ``"doc1-2-5"`` for document, paragraph and sentence.

    Create the key function once and use it for recoding and aggregation, so that row identities match.

    :param by: single grouping level or sequence of grouping levels
    :param glue: string used to join several levels
    :return: function that takes a Token or RecodedTerm object and returns its row label
    """
    if isinstance(by, str):
        by = (by, )
    else:
        by = tuple(by)

    if not by:
        raise ValueError('`by` must contain at least one grouping level')

    invalid = [lvl for lvl in by if lvl not in GROUPING_LEVELS]
    if invalid:
        raise ValueError(f'invalid grouping level(s) {", ".join(invalid)}; '
                         f'allowed are: {", ".join(GROUPING_LEVELS)}')

    if len(set(by)) != len(by):
        raise ValueError('`by` must not contain duplicate grouping levels')

    if len(by) == 1:
        field = by[0]

        def key_fn(t):
            return str(getattr(t, field))
    else:
        def key_fn(t):
            return glue.join(str(getattr(t, lvl)) for lvl in by)

    return key_fn
