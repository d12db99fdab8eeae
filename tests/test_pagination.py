import pytest

from pagination import all_pages, chunk, page_count, paginate


def test_pages_concatenate_to_input():
    items = list(range(7))
    pages = all_pages(items, 3)
    assert [p.items for p in pages] == [[0, 1, 2], [3, 4, 5], [6]]
    assert sum((p.items for p in pages), []) == items


def test_navigation_flags():
    items = list(range(7))
    first, middle, last = all_pages(items, 3)
    assert (first.has_prev, first.has_next) == (False, True)
    assert (middle.has_prev, middle.has_next) == (True, True)
    assert (last.has_prev, last.has_next) == (True, False)


def test_exact_multiple_has_no_empty_page():
    p = paginate(list(range(6)), 3, 1)
    assert p.total_pages == 2
    assert not p.has_next


def test_page_is_clamped():
    assert paginate(list(range(7)), 3, 10).page == 2
    assert paginate(list(range(7)), 3, -4).page == 0


def test_empty_list():
    p = paginate([], 15, 0)
    assert p.items == []
    assert p.total_pages == 1
    assert not p.has_prev and not p.has_next


def test_bad_page_size():
    with pytest.raises(ValueError):
        paginate([1, 2], 0, 0)


def test_helpers():
    assert page_count(0, 15) == 1
    assert page_count(16, 15) == 2
    assert chunk([1, 2, 3, 4], 3) == [[1, 2, 3], [4]]
