import math

import numpy as np
import pytest
import pandas as pd
from hypothesis import given

from ._testtools import strategy_token_stream, make_tokens

from tmcompound.types import Token, RecodedTerm
from tmcompound.tokenstream import (token_from_record, tokens_from_records, tokens_from_table, tokens_table,
                                    validate_tokens, partition_by_document, grouping_key)


RECORD = {'document_id': 'd1', 'paragraph_id': 1, 'sentence_id': 2, 'position': 3, 'surface_form': 'Houses',
          'lemma': 'house', 'pos_tag': 'NOUN'}


def test_token_from_record():
    tok = token_from_record(RECORD)
    assert tok == Token('d1', 1, 2, 3, 'Houses', 'house', 'NOUN')

    # optional fields may be missing or NaN
    rec = {k: v for k, v in RECORD.items() if k not in {'lemma', 'pos_tag'}}
    tok = token_from_record(rec)
    assert tok.lemma is None
    assert tok.pos_tag is None

    tok = token_from_record(dict(RECORD, lemma=math.nan, pos_tag=None))
    assert tok.lemma is None
    assert tok.pos_tag is None

    # document ID is always converted to a string
    assert token_from_record(dict(RECORD, document_id=7)).document_id == '7'

    # Token objects are passed through
    assert token_from_record(tok) == tok


@pytest.mark.parametrize('field', ['document_id', 'paragraph_id', 'sentence_id', 'position', 'surface_form'])
def test_token_from_record_missing_required_field(field):
    rec = {k: v for k, v in RECORD.items() if k != field}
    with pytest.raises(ValueError, match=field):
        token_from_record(rec, 5)

    with pytest.raises(ValueError, match='#5'):
        token_from_record(dict(RECORD, **{field: None}), 5)


@pytest.mark.parametrize('field, value', [
    ('position', 1.5),
    ('position', '3'),
    ('paragraph_id', True),
    ('surface_form', 3),
    ('lemma', 3),
    ('pos_tag', ['NOUN']),
])
def test_token_from_record_invalid_types(field, value):
    with pytest.raises(ValueError, match=field):
        token_from_record(dict(RECORD, **{field: value}))


def test_token_from_record_not_a_mapping():
    with pytest.raises(ValueError):
        token_from_record(['d1', 1, 2, 3, 'x'])


@pytest.mark.parametrize('args, field', [
    ((None, 0, 0, 0, 'a'), 'document_id'),
    ((7, 0, 0, 0, 'a'), 'document_id'),
    (('d1', None, 0, 0, 'a'), 'paragraph_id'),
    (('d1', 0, 0.0, 0, 'a'), 'sentence_id'),
    (('d1', 0, 0, '1', 'a'), 'position'),
    (('d1', 0, 0, True, 'a'), 'position'),
    (('d1', 0, 0, 1, None), 'surface_form'),
    (('d1', 0, 0, 1, 'a', 1), 'lemma'),
    (('d1', 0, 0, 1, 'a', None, ('NOUN', )), 'pos_tag'),
])
def test_token_invalid_fields(args, field):
    with pytest.raises(ValueError, match=field):
        Token(*args)


def test_token_integer_fields_normalized():
    tok = Token('d1', np.int64(1), np.int32(2), np.int64(3), 'a')
    assert tok == Token('d1', 1, 2, 3, 'a')
    assert all(type(v) is int for v in (tok.paragraph_id, tok.sentence_id, tok.position))


def test_token_from_record_invalid_type_names_record():
    with pytest.raises(ValueError, match=r'#4.*position'):
        token_from_record(dict(RECORD, position='3'), 4)


def test_tokens_from_records():
    records = [dict(RECORD, position=i, surface_form=w) for i, w in enumerate(['a', 'b', 'c'])]
    tokens = tokens_from_records(records)
    assert [t.surface_form for t in tokens] == ['a', 'b', 'c']
    assert [t.position for t in tokens] == [0, 1, 2]

    records[2]['position'] = 1
    with pytest.raises(ValueError, match='strictly increasing'):
        tokens_from_records(records)

    assert len(tokens_from_records(records, validate=False)) == 3
    assert tokens_from_records([]) == []


def test_tokens_from_table():
    df = pd.DataFrame({
        'document_id': ['d1', 'd1', 'd2'],
        'paragraph_id': [0, 0, 0],
        'sentence_id': [0, 0, 1],
        'position': [0, 1, 0],
        'surface_form': ['New', 'York', 'is'],
        'lemma': ['new', None, 'be'],
        'extra_column': [1, 2, 3],
    })

    tokens = tokens_from_table(df)
    assert len(tokens) == 3
    assert tokens[0] == Token('d1', 0, 0, 0, 'New', 'new', None)
    assert tokens[1].lemma is None
    assert tokens[2].document_id == 'd2'

    with pytest.raises(ValueError, match='surface_form'):
        tokens_from_table(df.drop(columns='surface_form'))


@given(tokens=strategy_token_stream())
def test_tokens_table_roundtrip(tokens):
    df = tokens_table(tokens)
    assert len(df) == len(tokens)
    assert df.columns.tolist() == ['document_id', 'paragraph_id', 'sentence_id', 'position', 'surface_form',
                                   'lemma', 'pos_tag']
    if tokens:
        assert tokens_from_table(df) == tokens


def test_validate_tokens():
    tokens = make_tokens('d1', ['a', 'b']) + make_tokens('d2', ['c']) + make_tokens('d1', ['d'], start=5)
    validate_tokens(tokens)   # interleaved documents are fine as long as positions increase per document

    tokens.append(make_tokens('d2', ['e'])[0])    # position 0 after position 0 in d2
    with pytest.raises(ValueError) as exc:
        validate_tokens(tokens)

    msg = str(exc.value)
    assert '"d2"' in msg
    assert 'position 0' in msg


@given(tokens=strategy_token_stream())
def test_partition_by_document(tokens):
    docs = partition_by_document(tokens)

    expected_order = []
    for t in tokens:
        if t.document_id not in expected_order:
            expected_order.append(t.document_id)

    assert list(docs.keys()) == expected_order
    assert sum(map(len, docs.values())) == len(tokens)

    for doc_id, doc_tokens in docs.items():
        assert all(t.document_id == doc_id for t in doc_tokens)
        positions = [t.position for t in doc_tokens]
        assert positions == sorted(set(positions))


def test_grouping_key():
    tok = Token('doc1', 2, 5, 17, 'x')

    assert grouping_key()(tok) == 'doc1'
    assert grouping_key('sentence_id')(tok) == '5'
    assert grouping_key(['document_id', 'paragraph_id', 'sentence_id'])(tok) == 'doc1-2-5'
    assert grouping_key(('document_id', 'sentence_id'), glue='/')(tok) == 'doc1/5'

    # works for recoded terms, too
    term = RecodedTerm('x y', (tok, Token('doc1', 2, 5, 18, 'y')))
    assert grouping_key(['document_id', 'sentence_id'])(term) == 'doc1-5'

    with pytest.raises(ValueError):
        grouping_key([])
    with pytest.raises(ValueError):
        grouping_key('position')
    with pytest.raises(ValueError):
        grouping_key(['document_id', 'document_id'])
