from __future__ import annotations

from app.ingest.flattener import flatten_grouping


def test_empty_and_absent_groupings_yield_nothing():
    assert flatten_grouping({}) == []
    assert flatten_grouping(None) == []
    assert flatten_grouping({'2026-02-27': {}}) == []
    assert flatten_grouping({'2026-02-27': {'conv-1': []}}) == []


def test_flatten_two_levels_keeps_every_event():
    a, b, c = {'message_text': 'a'}, {'message_text': 'b'}, {'message_text': 'c'}
    out = flatten_grouping({'g1': {'s1': [a, b]}, 'g2': {'s2': [c]}})
    assert len(out) == 3
    assert sorted(e['message_text'] for e in out) == ['a', 'b', 'c']
    assert out.index(a) < out.index(b)


def test_flatten_discards_keys_and_preserves_leaf_order():
    leaf = [{'n': i} for i in range(5)]
    out = flatten_grouping({'day': {'conv': leaf, 'other': [{'n': 99}]}})
    assert [e['n'] for e in out if e['n'] != 99] == [0, 1, 2, 3, 4]
    assert all(set(e) == {'n'} for e in out)


def test_flatten_returns_same_event_objects():
    event = {'message_id': 'm-1'}
    out = flatten_grouping({'g': {'s': [event]}})
    assert out[0] is event
