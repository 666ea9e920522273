from vcardio.mapping import CaseInsensitiveDict


def test_set_and_get_ignore_case():
    d = CaseInsensitiveDict()
    d['Key1'] = 42

    assert d['key1'] == 42
    assert d['KEY1'] == 42
    assert d.get('kEy1') == 42


def test_contains_ignores_case():
    d = CaseInsensitiveDict({'KEY1': 'Value1'})

    assert 'key1' in d
    assert 'Key1' in d
    assert 'nonExistentKey' not in d
    assert 1 not in d


def test_delete_ignores_case():
    d = CaseInsensitiveDict({'key1': 'Value1', 'key2': 'Value2'})

    del d['KEY1']
    assert 'key1' not in d
    assert d.discard('kEy2') is True
    assert d.discard('key2') is False
    assert len(d) == 0


def test_keys_are_stored_lower_case():
    d = CaseInsensitiveDict(First=1)
    d['SECOND'] = 2

    assert list(d) == ['first', 'second']


def test_update_keeps_first_insertion_position():
    d = CaseInsensitiveDict()
    d['a'] = 1
    d['b'] = 2
    d['A'] = 3

    assert list(d.items()) == [('a', 3), ('b', 2)]


def test_equality_is_ordered():
    assert CaseInsensitiveDict(a=1, b=2) == CaseInsensitiveDict(A=1, B=2)
    assert CaseInsensitiveDict(a=1, b=2) != CaseInsensitiveDict(b=2, a=1)


def test_copy_is_independent():
    d = CaseInsensitiveDict(a=1)
    c = d.copy()
    c['a'] = 2

    assert d['a'] == 1
    assert c['a'] == 2
