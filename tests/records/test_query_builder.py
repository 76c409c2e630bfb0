from __future__ import annotations

import pytest

from roster_system.core.enums import SortDirection
from roster_system.core.exceptions import ValidationError
from roster_system.records.query import FilterSpec, PageSpec, QueryBuilder, SortSpec


def test_defaults_apply_active_filter_and_created_at_desc():
    built = QueryBuilder().build()

    assert built.query.is_active is True
    assert built.sort == SortSpec(field="created_at", direction=SortDirection.DESC)
    assert (built.page, built.limit, built.skip) == (1, 10, 0)
    assert built.cache_key.startswith("record-list:")


def test_explicit_inactive_filter_is_kept():
    query = QueryBuilder().normalize_filter(FilterSpec(is_active=False))
    assert query.is_active is False


def test_same_inputs_give_same_key():
    qb = QueryBuilder()
    a = qb.build(FilterSpec(name="  Jane ", age_min=20), SortSpec("name", SortDirection.ASC), PageSpec(2, 5))
    b = qb.build(FilterSpec(name="Jane", age_min="20"), SortSpec("name", "asc"), PageSpec(2, 5))
    assert a.cache_key == b.cache_key


def test_different_pages_give_different_keys():
    qb = QueryBuilder()
    assert qb.build(page_spec=PageSpec(1, 10)).cache_key != qb.build(page_spec=PageSpec(2, 10)).cache_key


def test_record_ids_are_part_of_the_key():
    qb = QueryBuilder()
    mine = qb.build(FilterSpec(record_ids=[3]))
    theirs = qb.build(FilterSpec(record_ids=[4]))
    unscoped = qb.build(FilterSpec())
    assert len({mine.cache_key, theirs.cache_key, unscoped.cache_key}) == 3
    assert qb.build(FilterSpec(record_ids=[2, 1, 2])).query.record_ids == (1, 2)


def test_age_bounds_must_be_ordered():
    with pytest.raises(ValidationError):
        QueryBuilder().normalize_filter(FilterSpec(age_min=40, age_max=30))


@pytest.mark.parametrize("page", [PageSpec(0, 10), PageSpec(1, 0), PageSpec(1, 101), PageSpec("x", 10)])
def test_invalid_pages_are_rejected(page):
    with pytest.raises(ValidationError):
        QueryBuilder().validate_page(page)


def test_max_page_size_is_configurable():
    qb = QueryBuilder(max_page_size=20)
    assert qb.validate_page(PageSpec(1, 20)).limit == 20
    with pytest.raises(ValidationError):
        qb.validate_page(PageSpec(1, 21))


def test_unknown_sort_field_and_direction_are_rejected():
    qb = QueryBuilder()
    with pytest.raises(ValidationError):
        qb.normalize_sort(SortSpec(field="password_hash"))
    with pytest.raises(ValidationError):
        qb.normalize_sort(SortSpec(field="name", direction="sideways"))


def test_page_envelope_flags():
    env = QueryBuilder.page_envelope([{"id": 1}], total=21, page=2, limit=10)
    assert env.pages == 3
    assert env.has_next_page is True
    assert env.has_prev_page is True

    last = QueryBuilder.page_envelope([], total=21, page=3, limit=10)
    assert last.has_next_page is False

    empty = QueryBuilder.page_envelope([], total=0, page=1, limit=10)
    assert (empty.pages, empty.has_next_page, empty.has_prev_page) == (0, False, False)
