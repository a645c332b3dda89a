import pytest
from hypothesis import given, settings, strategies as st

from ._testtools import strategy_token_stream, make_tokens

from tmcompound.types import Token, CompoundCandidate, RecodedTerm
from tmcompound.recode import (compound_candidates, recode_ngrams, RecodingStage, RecodingPipeline,
                               recoded_terms_table)


def _terms(recoded_doc):
    return [t.term for t in recoded_doc]


#%% compound candidates


def test_compound_candidates():
    cands = compound_candidates(['new york', ('new', 'york', 'city'), 'new york', CompoundCandidate(('a', 'b'), 2)])
    assert cands == [CompoundCandidate(('new', 'york'), 2), CompoundCandidate(('new', 'york', 'city'), 3),
                     CompoundCandidate(('a', 'b'), 2)]

    assert compound_candidates(['a_b_c'], sep='_') == [CompoundCandidate(('a', 'b', 'c'), 3)]
    assert compound_candidates([]) == []

    with pytest.raises(ValueError, match='at least two elements'):
        compound_candidates(['new york', 'york'])

    assert compound_candidates(['new york', 'york', ()], drop_short=True) == [CompoundCandidate(('new', 'york'), 2)]

    with pytest.raises(ValueError):
        compound_candidates('new york')


@pytest.mark.parametrize('phrase, length', [
    (('a', ), 1),
    (('a', 'b'), 3),
    (('a', ''), 2),
    ('ab', 2),
    (('a', 1), 2),
])
def test_compound_candidate_invalid(phrase, length):
    with pytest.raises(ValueError):
        CompoundCandidate(phrase, length)


def test_compound_candidate_normalizes_phrase():
    cand = CompoundCandidate(['new', 'york'], 2)
    assert cand.phrase == ('new', 'york')
    assert hash(cand) == hash(CompoundCandidate(('new', 'york'), 2))
    assert str(cand) == 'new york'


#%% recoding


def test_recode_ngrams_concrete_scenario():
    tokens = make_tokens('d1', ['new', 'york', 'city', 'is', 'big'])
    res = recode_ngrams(tokens, [('new', 'york', 'city')])

    assert list(res.keys()) == ['d1']
    doc = res['d1']
    assert _terms(doc) == ['new york city', 'is', 'big']
    assert [t.positions for t in doc] == [(0, 1, 2), (3, ), (4, )]
    assert [(t.start, t.stop) for t in doc] == [(0, 3), (3, 4), (4, 5)]
    assert [t.is_compound for t in doc] == [True, False, False]
    assert doc[0].document_id == 'd1'
    assert doc[0].surface_form == 'new york city'
    assert doc[0].lemma is None


def test_recode_ngrams_longest_match_first():
    tokens = make_tokens('d1', ['new', 'york', 'city', 'and', 'new', 'york', 'state'])
    res = recode_ngrams(tokens, ['new york', 'new york city', 'york city'])
    assert _terms(res['d1']) == ['new york city', 'and', 'new york', 'state']


def test_recode_ngrams_scan_continues_after_match():
    tokens = make_tokens('d1', ['a', 'b', 'c', 'd'])
    # "b c" can't match because "b" is consumed by "a b"
    res = recode_ngrams(tokens, ['a b', 'b c', 'c d'])
    assert _terms(res['d1']) == ['a b', 'c d']


def test_recode_ngrams_candidate_longer_than_document():
    tokens = make_tokens('d1', ['new', 'york'])
    res = recode_ngrams(tokens, ['new york city hall', 'new york'])
    assert _terms(res['d1']) == ['new york']

    res = recode_ngrams(make_tokens('d1', ['new']), ['new york'])
    assert _terms(res['d1']) == ['new']


def test_recode_ngrams_no_match_across_documents():
    tokens = make_tokens('d1', ['new']) + make_tokens('d2', ['york'], start=1)
    res = recode_ngrams(tokens, ['new york'])
    assert _terms(res['d1']) == ['new']
    assert _terms(res['d2']) == ['york']


def test_recode_ngrams_empty_candidates_identity():
    tokens = make_tokens('d1', ['a', 'b', 'c'])
    res = recode_ngrams(tokens, [])
    assert _terms(res['d1']) == ['a', 'b', 'c']
    assert all(not t.is_compound for t in res['d1'])
    assert [t.tokens[0] for t in res['d1']] == tokens


def test_recode_ngrams_empty_input():
    assert recode_ngrams([], ['a b']) == {}


def test_recode_ngrams_select_lemma():
    tokens = make_tokens('d1', ['New', 'Yorks', 'is'], lemmata=['new', 'york', None])
    res = recode_ngrams(tokens, ['new york'], select='lemma')
    assert _terms(res['d1']) == ['new york', None]

    res = recode_ngrams(tokens, ['new yorks'], select=lambda t: t.surface_form.lower())
    assert _terms(res['d1']) == ['new yorks', 'is']

    with pytest.raises(ValueError):
        recode_ngrams(tokens, ['new york'], select='pos_tag')


def test_recode_ngrams_compound_of_lemmata_keeps_surface_forms():
    tokens = make_tokens('d1', ['New', 'Yorks', 'is'], lemmata=['new', 'york', 'be'])
    res = recode_ngrams(tokens, ['new york'], select='lemma')
    compound = res['d1'][0]
    assert compound.term == 'new york'
    assert compound.surface_form == 'new york'
    assert [t.surface_form for t in compound.tokens] == ['New', 'Yorks']


def test_recode_ngrams_gapped_positions():
    tokens = [Token('d1', 0, 0, 2, 'new'), Token('d1', 0, 0, 5, 'york'), Token('d1', 0, 0, 9, 'is')]
    res = recode_ngrams(tokens, ['new york'])
    compound, single = res['d1']
    assert compound.positions == (2, 5)
    assert (compound.start, compound.stop) == (2, 6)
    assert single.positions == (9, )
    assert sorted(p for t in res['d1'] for p in t.positions) == [2, 5, 9]


def test_recode_ngrams_malformed_tokens():
    with pytest.raises(ValueError, match='surface_form'):
        recode_ngrams([Token('d1', 0, 0, 0, 'new'), Token('d1', 0, 0, 1, None)], ['new york'])

    with pytest.raises(ValueError, match='position'):
        recode_ngrams([Token('d1', 0, 0, '1', 'a'), Token('d1', 0, 0, 2, 'b')], ['a b'])

    with pytest.raises(ValueError, match='strictly increasing'):
        recode_ngrams([Token('d1', 0, 0, 2, 'a'), Token('d1', 0, 0, 2, 'b')], ['a b'])


def test_recode_ngrams_missing_field_never_matches():
    tokens = make_tokens('d1', ['a', 'b', 'c'], lemmata=['a', None, 'c'])
    res = recode_ngrams(tokens, ['a b', 'b c'], select='lemma')
    assert _terms(res['d1']) == ['a', None, 'c']


def test_recode_ngrams_glue():
    tokens = make_tokens('d1', ['new', 'york'])
    res = recode_ngrams(tokens, ['new york'], glue='_')
    assert _terms(res['d1']) == ['new_york']

    with pytest.raises(ValueError):
        recode_ngrams(tokens, ['new york'], glue=None)


def test_recode_ngrams_ignore_case():
    tokens = make_tokens('d1', ['New', 'York', 'is'])
    assert _terms(recode_ngrams(tokens, ['new york'])['d1']) == ['New', 'York', 'is']

    res = recode_ngrams(tokens, ['new york'], ignore_case=True)
    # the compound is formed from the tokens' own texts
    assert _terms(res['d1']) == ['New York', 'is']

    # candidates colliding under case folding are both fine
    res = recode_ngrams(tokens, ['new york', 'New York'], ignore_case=True)
    assert _terms(res['d1']) == ['New York', 'is']


def test_recode_ngrams_invalid_positions():
    tokens = make_tokens('d1', ['a', 'b'])
    tokens.append(Token('d1', 0, 0, 1, 'c'))
    with pytest.raises(ValueError, match='strictly increasing'):
        recode_ngrams(tokens, ['a b'])


def test_recode_ngrams_dict_input():
    docs = {'d2': make_tokens('d2', ['x', 'y']), 'd1': make_tokens('d1', ['a', 'b', 'c'])}
    res = recode_ngrams(docs, ['a b', 'x y'])
    assert list(res.keys()) == ['d2', 'd1']
    assert _terms(res['d2']) == ['x y']
    assert _terms(res['d1']) == ['a b', 'c']


def test_recode_ngrams_parallel():
    tokens = []
    for d in range(6):
        tokens.extend(make_tokens(f'd{d}', ['new', 'york', 'city', 'is', 'big'] * (d + 1)))

    res_serial = recode_ngrams(tokens, ['new york city', 'is big'])
    res_parallel = recode_ngrams(tokens, ['new york city', 'is big'], max_workers=2)

    assert list(res_parallel.keys()) == list(res_serial.keys())
    assert res_parallel == res_serial

    with pytest.raises(ValueError):
        recode_ngrams(tokens, ['a b'], max_workers=0)


_cand_words = st.lists(st.sampled_from(list('abcdef')), min_size=2, max_size=4)


@given(tokens=strategy_token_stream(), candidates=st.lists(_cand_words, max_size=6))
@settings(max_examples=50)
def test_recode_ngrams_coverage(tokens, candidates):
    """Every original position is covered exactly once, in order, and compounds only join adjacent tokens."""
    res = recode_ngrams(tokens, candidates)
    cand_set = {tuple(c) for c in candidates}

    by_doc = {}
    for t in tokens:
        by_doc.setdefault(t.document_id, []).append(t)

    assert list(res.keys()) == list(by_doc.keys())

    for doc_id, doc_terms in res.items():
        covered = [tok for t in doc_terms for tok in t.tokens]
        assert covered == by_doc[doc_id]

        for t in doc_terms:
            if t.is_compound:
                assert tuple(tok.surface_form for tok in t.tokens) in cand_set
                assert t.term == ' '.join(tok.surface_form for tok in t.tokens)
            else:
                assert t.term == t.tokens[0].surface_form


@given(tokens=strategy_token_stream(), candidates=st.lists(_cand_words, max_size=6))
@settings(max_examples=50)
def test_recode_ngrams_longest_match_property(tokens, candidates):
    """No single term that starts a document segment could have been the start of a longer candidate match."""
    res = recode_ngrams(tokens, candidates)
    cand_set = {tuple(c) for c in candidates}
    max_len = max(map(len, candidates)) if candidates else 0

    for doc_terms in res.values():
        texts = [tok.surface_form for t in doc_terms for tok in t.tokens]
        i = 0
        for t in doc_terms:
            for n in range(t.length + 1, max_len + 1):
                assert tuple(texts[i:i + n]) not in cand_set or i + n > len(texts)
            i += t.length


#%% pipeline


def test_recoding_pipeline_atomicity():
    tokens = make_tokens('d1', ['new', 'york', 'city', 'hall', 'is', 'big'])
    pipe = RecodingPipeline([['new york city'], ['york city hall', 'city hall', 'hall is']])
    assert len(pipe) == 2

    res = pipe.apply(tokens)
    # "new york city" from the first pass is never split or re-matched in the second pass
    assert _terms(res['d1']) == ['new york city', 'hall is', 'big']


def test_recoding_pipeline_compounds_not_extended():
    tokens = make_tokens('d1', ['a', 'b', 'c'])
    pipe = RecodingPipeline([RecodingStage(['a b']), RecodingStage(['a b c'])])
    res = pipe.apply(tokens)
    assert _terms(res['d1']) == ['a b', 'c']


def test_recoding_pipeline_stage_options():
    tokens = make_tokens('d1', ['New', 'York', 'City'], lemmata=['new', 'york', 'city'])
    pipe = RecodingPipeline([RecodingStage(['NEW YORK'], ignore_case=True)], glue='_')
    assert _terms(pipe.apply(tokens)['d1']) == ['New_York', 'City']

    pipe = RecodingPipeline([RecodingStage(['york city'])], select='lemma')
    assert _terms(pipe.apply(tokens)['d1']) == ['new', 'york city']

    assert RecodingStage(['a b', 'a b']).candidates == (CompoundCandidate(('a', 'b'), 2), )

    with pytest.raises(ValueError):
        RecodingStage(['a'])

    with pytest.raises(ValueError):
        RecodingPipeline([], select='foo')


def test_recoding_pipeline_no_stages():
    tokens = make_tokens('d1', ['a', 'b'])
    res = RecodingPipeline([]).apply(tokens)
    assert _terms(res['d1']) == ['a', 'b']
    assert all(isinstance(t, RecodedTerm) for t in res['d1'])

    tokens.append(Token('d1', 0, 0, 0, 'c'))
    with pytest.raises(ValueError):
        RecodingPipeline([]).apply(tokens)


def test_recoding_pipeline_parallel():
    tokens = []
    for d in range(5):
        tokens.extend(make_tokens(f'd{d}', ['a', 'b', 'c', 'd'] * (d + 1)))

    pipe = RecodingPipeline([['a b'], ['c d']])
    assert pipe.apply(tokens, max_workers=2) == pipe.apply(tokens)


def test_recoded_terms_table():
    tokens = make_tokens('d1', ['new', 'york', 'is'])
    df = recoded_terms_table(recode_ngrams(tokens, ['new york']))
    assert df.columns.tolist() == ['doc', 'start', 'stop', 'term', 'is_compound']
    assert df['term'].tolist() == ['new york', 'is']
    assert df['start'].tolist() == [0, 2]
    assert df['stop'].tolist() == [2, 3]
    assert df['is_compound'].tolist() == [True, False]
