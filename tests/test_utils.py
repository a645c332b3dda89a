import logging
import string
from datetime import date

import pytest
import hypothesis.strategies as st
from hypothesis import given
import numpy as np

from tmcompound.utils import (pickle_data, unpickle_file, flatten_list, greedy_partitioning, empty_chararray,
                              as_chararray, merge_dicts, enable_logging, set_logging_level, disable_logging, dict2df)


@pytest.mark.parametrize('level, fmt', [
    (logging.DEBUG, '%(levelname)s:%(name)s:%(message)s'),
    (logging.INFO, '%(levelname)s:%(name)s:%(message)s'),
    (logging.WARNING, '%(levelname)s:%(name)s:%(message)s'),
    (logging.INFO, '<default>'),
])
def test_enable_disable_logging(caplog, level, fmt):
    pkg_logger = logging.getLogger('tmcompound')
    pkg_logger.setLevel(logging.WARNING)      # reset to default level

    pkg_logger.debug('test line debug 1')
    pkg_logger.info('test line info 1')
    assert caplog.text == ''

    # pytest caplog fixture uses an extra logging handler (which is already added to the logger)
    if fmt == '<default>':
        enable_logging(level, logging_handler=caplog.handler, add_logging_handler=False)
    else:
        enable_logging(level, fmt, logging_handler=caplog.handler, add_logging_handler=False)

    pkg_logger.debug('test line debug 2')
    if level == logging.DEBUG:
        assert caplog.text.endswith('DEBUG:tmcompound:test line debug 2\n')
        if fmt == '<default>':
            assert caplog.text.startswith(date.today().isoformat())
    else:
        assert caplog.text == ''

    caplog.clear()

    pkg_logger.info('test line info 2')
    if level <= logging.INFO:
        assert caplog.text.endswith('INFO:tmcompound:test line info 2\n')
        if fmt == '<default>':
            assert caplog.text.startswith(date.today().isoformat())
    else:
        assert caplog.text == ''

    if level > logging.DEBUG:   # reduce logging level to DEBUG
        caplog.clear()
        set_logging_level(logging.DEBUG)
        pkg_logger.debug('test line debug 3')
        assert caplog.text.endswith('DEBUG:tmcompound:test line debug 3\n')
        if fmt == '<default>':
            assert caplog.text.startswith(date.today().isoformat())

    caplog.clear()
    disable_logging()

    pkg_logger.debug('test line debug 4')
    pkg_logger.info('test line info 4')

    assert caplog.text == ''


def test_pickle_unpickle(tmp_path):
    pfile = str(tmp_path / 'test_pickle_unpickle.pickle')
    input_data = ('foo', 123, [])
    pickle_data(input_data, pfile)

    output_data = unpickle_file(pfile)

    for i, o in zip(input_data, output_data):
        assert i == o


def test_empty_chararray():
    res = empty_chararray()
    assert isinstance(res, np.ndarray)
    assert len(res) == 0
    assert res.ndim == 1
    assert np.issubdtype(res.dtype, 'str')


@given(x=st.lists(st.integers()),
       as_numpy_array=st.booleans())
def test_as_chararray(x, as_numpy_array):
    x_orig = x
    if as_numpy_array:
        x = np.array(x)

    res = as_chararray(x)
    assert isinstance(res, np.ndarray)
    assert len(res) == len(x)
    assert res.ndim == 1
    assert np.issubdtype(res.dtype, 'str')
    assert res.tolist() == list(map(str, x_orig))


@given(data=st.dictionaries(keys=st.text(string.ascii_letters, min_size=1), values=st.integers(), max_size=10),
       sort=st.sampled_from([None, 'key', '-value']))
def test_dict2df(data, sort):
    res = dict2df(data, sort=sort)
    assert res.columns.tolist() == ['key', 'value']
    assert len(res) == len(data)
    assert res.index.tolist() == list(range(len(data)))

    if sort == 'key':
        assert res['key'].tolist() == sorted(data.keys())
    elif sort == '-value':
        assert res['value'].tolist() == sorted(data.values(), reverse=True)
    else:
        assert res['key'].tolist() == list(data.keys())

    with pytest.raises(ValueError):
        dict2df(data, key_name='x', value_name='x')


@given(l=st.lists(st.lists(st.integers(0, 10), max_size=5), max_size=5))
def test_flatten_list(l):
    flat = flatten_list(l)
    assert len(flat) == sum(map(len, l))
    assert flat == [x for sub in l for x in sub]


@given(dicts=st.lists(st.dictionaries(st.text(), st.integers())), safe=st.booleans())
def test_merge_dicts(dicts, safe):
    all_keys = [k for d in dicts for k in d.keys()]

    if safe and len(all_keys) != len(set(all_keys)):
        with pytest.raises(ValueError):
            merge_dicts(dicts, safe=safe)
    else:
        res = merge_dicts(dicts, safe=safe)
        expected = {}
        for d in dicts:
            expected.update(d)
        assert res == expected


@given(elems_dict=st.dictionaries(st.text(string.printable), st.floats(allow_nan=False, allow_infinity=False)),
       k=st.integers(-1, 10),
       return_only_labels=st.booleans())
def test_greedy_partitioning(elems_dict, k, return_only_labels):
    if k <= 0:
        with pytest.raises(ValueError):
            greedy_partitioning(elems_dict, k)
    else:
        bins = greedy_partitioning(elems_dict, k, return_only_labels=return_only_labels)

        if k == 1:
            assert len(bins) == 1
        elif k <= len(elems_dict):
            assert k == len(bins)
        else:
            assert len(bins) == len(elems_dict)
            assert all(len(b) == 1 for b in bins)

        if return_only_labels:
            labels = [lbl for b in bins for lbl in b]
        else:
            labels = [lbl for b in bins for lbl in b.keys()]

        assert sorted(labels) == sorted(elems_dict.keys())
