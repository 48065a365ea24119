"""Filtering, sorting and page slicing of in-memory lists."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import pytest

from aggregation import Balance
from listing import (
    ListFilter,
    SortSpec,
    apply_filter,
    clamp_page,
    page_count,
    paginate,
    sort_items,
)


@dataclass
class Item:
    id: int
    name: str
    status: str
    category: Optional[str] = None
    due: Optional[int] = None


ITEMS = [
    Item(1, "Oak table", "active", "Furniture", 3),
    Item(2, "Brass lamp", "inactive", "Lighting", None),
    Item(3, "oak floor", "active", "Flooring", 1),
    Item(4, "Wall paint", "active", "Paint", 2),
]


class TestFilter:
    def test_search_is_case_insensitive(self):
        out = apply_filter(ITEMS, ListFilter(search="OAK", search_fields=("name",)))
        assert [i.id for i in out] == [1, 3]

    def test_empty_and_all_switch_predicates_off(self):
        flt = ListFilter(search="", status="all", search_fields=("name",))
        assert apply_filter(ITEMS, flt) == ITEMS

    def test_filters_commute(self):
        by_status = apply_filter(ITEMS, ListFilter(status="active"))
        then_text = apply_filter(by_status, ListFilter(search="oak", search_fields=("name",)))
        by_text = apply_filter(ITEMS, ListFilter(search="oak", search_fields=("name",)))
        then_status = apply_filter(by_text, ListFilter(status="active"))
        assert then_text == then_status

    def test_extra_equality(self):
        out = apply_filter(ITEMS, ListFilter(extra={"category": "Lighting"}))
        assert [i.id for i in out] == [2]

    def test_payment_status_uses_balance(self):
        balances = {1: Balance(Decimal("10"), Decimal("0")), 2: Balance(Decimal("10"), Decimal("10")),
                    3: Balance(Decimal("0"), Decimal("5")), 4: Balance(Decimal("1"), Decimal("0"))}
        flt = ListFilter(payment_status="completed")
        out = apply_filter(ITEMS, flt, balance_of=lambda i: balances[i.id])
        assert [i.id for i in out] == [2, 3]

    def test_payment_status_needs_balance_function(self):
        with pytest.raises(ValueError):
            apply_filter(ITEMS, ListFilter(payment_status="pending"))

    def test_input_not_mutated(self):
        items = list(ITEMS)
        apply_filter(items, ListFilter(status="inactive"))
        assert items == ITEMS


class TestSort:
    def test_by_name_casefolded(self):
        out = sort_items(ITEMS, SortSpec("name", True), ("name",))
        assert [i.id for i in out] == [2, 3, 1, 4]

    def test_none_goes_last_both_directions(self):
        asc = sort_items(ITEMS, SortSpec("due", True), ("due",))
        desc = sort_items(ITEMS, SortSpec("due", False), ("due",))
        assert [i.id for i in asc] == [3, 4, 1, 2]
        assert [i.id for i in desc] == [1, 4, 3, 2]

    def test_unknown_key_falls_back_to_id(self):
        out = sort_items(reversed(ITEMS), SortSpec("secret", True), ("name",))
        assert [i.id for i in out] == [1, 2, 3, 4]


class TestPagination:
    @pytest.mark.parametrize("total,expected", [(0, 0), (1, 1), (7, 1), (8, 2), (14, 2), (15, 3)])
    def test_page_count(self, total, expected):
        assert page_count(total, 7) == expected

    def test_bad_page_size(self):
        with pytest.raises(ValueError):
            page_count(3, 0)

    def test_empty_list(self):
        page = paginate([], 3)
        assert page.items == []
        assert page.page_count == 0
        assert page.page == 1
        assert not page.has_next and not page.has_prev

    def test_seven_per_page(self):
        page = paginate(list(range(20)), 2)
        assert page.items == list(range(7, 14))
        assert page.page_count == 3
        assert page.has_prev and page.has_next

    def test_page_clamped_after_list_shrinks(self):
        page = paginate(list(range(9)), 5)
        assert page.page == 2
        assert page.items == [7, 8]

    def test_clamp_page(self):
        assert clamp_page(0, 4) == 1
        assert clamp_page(9, 4) == 4
        assert clamp_page(3, 0) == 1
