import pytest

from exam_portal.services.navigation import NavigationController


def test_next_and_previous_are_clamped():
    nav = NavigationController(3)

    assert nav.previous() == 0
    assert nav.is_first
    assert nav.next() == 1
    assert nav.next() == 2
    assert nav.next() == 2
    assert nav.is_last
    assert nav.previous() == 1


def test_go_to_jumps_anywhere():
    nav = NavigationController(5)

    assert nav.go_to(4) == 4
    assert nav.go_to(0) == 0


@pytest.mark.parametrize("index", [-1, 5])
def test_go_to_out_of_range(index):
    nav = NavigationController(5)
    nav.go_to(2)

    with pytest.raises(IndexError):
        nav.go_to(index)
    assert nav.current_index == 2


def test_progress_percent():
    nav = NavigationController(3)

    assert nav.progress_percent(0) == 0
    assert nav.progress_percent(1) == 33.33
    assert nav.progress_percent(3) == 100


def test_requires_questions():
    with pytest.raises(ValueError):
        NavigationController(0)
