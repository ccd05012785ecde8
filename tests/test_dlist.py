import pytest

from rasqueue.dlist import DoubleList


@pytest.fixture
def destroyed():
    return []


@pytest.fixture
def dl(destroyed):
    return DoubleList(destroyed.append, 4)


def test_requires_destroy_function():
    with pytest.raises(TypeError):
        DoubleList(None, 4)


def test_negative_cache_size_becomes_zero(destroyed):
    lst = DoubleList(destroyed.append, -5)
    assert lst.cache_size == 0


def test_add_head_and_tail_order(dl):
    dl.add_tail("b")
    dl.add_head("a")
    dl.add_tail("c")
    assert list(dl) == ["a", "b", "c"]
    assert len(dl) == 3


def test_peek_ends(dl):
    dl.add_tail("x")
    dl.add_tail("y")
    assert dl.peek_head() == "x"
    assert dl.peek_tail() == "y"
    assert len(dl) == 2


def test_peek_empty_raises(dl):
    with pytest.raises(IndexError):
        dl.peek_head()
    with pytest.raises(IndexError):
        dl.peek_tail()


def test_get_positive_and_negative(dl):
    for v in ["a", "b", "c"]:
        dl.add_tail(v)
    assert dl.get(0) == "a"
    assert dl.get(2) == "c"
    assert dl.get(-1) == "c"
    assert dl.get(-3) == "a"


def test_get_out_of_range(dl):
    dl.add_tail("a")
    with pytest.raises(IndexError):
        dl.get(1)
    with pytest.raises(IndexError):
        dl.get(-2)


def test_insert_at_zero_and_end(dl):
    dl.insert(0, "b")
    dl.insert(0, "a")
    dl.insert(2, "c")
    assert list(dl) == ["a", "b", "c"]


def test_insert_in_middle(dl):
    for v in ["a", "c"]:
        dl.add_tail(v)
    dl.insert(1, "b")
    assert list(dl) == ["a", "b", "c"]
    assert len(dl) == 3


def test_insert_negative_goes_before_counted_node(dl):
    for v in ["a", "c"]:
        dl.add_tail(v)
    dl.insert(-1, "b")
    assert list(dl) == ["a", "b", "c"]


def test_insert_out_of_range(dl):
    dl.add_tail("a")
    with pytest.raises(IndexError):
        dl.insert(5, "z")
    with pytest.raises(IndexError):
        dl.insert(-3, "z")
    assert list(dl) == ["a"]


def test_pop_head_returns_value(dl, destroyed):
    dl.add_tail("a")
    dl.add_tail("b")
    assert dl.pop_head() == "a"
    assert list(dl) == ["b"]
    assert destroyed == []


def test_pop_tail_with_destroy(dl, destroyed):
    dl.add_tail("a")
    dl.add_tail("b")
    assert dl.pop_tail(destroy=True) is None
    assert destroyed == ["b"]
    assert list(dl) == ["a"]


def test_pop_until_empty(dl):
    dl.add_tail("a")
    assert dl.pop_tail() == "a"
    assert len(dl) == 0
    with pytest.raises(IndexError):
        dl.pop_head()
    with pytest.raises(IndexError):
        dl.pop_tail()


def test_pop_at(dl, destroyed):
    for v in ["a", "b", "c", "d"]:
        dl.add_tail(v)
    assert dl.pop_at(1) == "b"
    assert dl.pop_at(-1, destroy=True) is None
    assert destroyed == ["d"]
    assert list(dl) == ["a", "c"]


def test_pop_at_out_of_range(dl):
    with pytest.raises(IndexError):
        dl.pop_at(0)


def test_clear_destroys_everything_in_order(dl, destroyed):
    for v in ["a", "b", "c"]:
        dl.add_tail(v)
    dl.clear()
    assert destroyed == ["a", "b", "c"]
    assert len(dl) == 0
    assert list(dl) == []