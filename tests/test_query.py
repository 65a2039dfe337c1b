"""Tests for the query-string driven QueryFeatures builder."""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from natours.errors import ValidationError
from natours.models.tour import Tour
from natours.models.user import User
from natours.services.query import DEFAULT_LIMIT, QueryFeatures, to_snake
from natours.services.users import HIDDEN_FIELDS


@pytest.fixture(name="tours")
def tours_fixture(make_tour) -> list[Tour]:
    return [
        make_tour("The Forest Hiker", price=397, duration=5, difficulty="easy"),
        make_tour("The Sea Explorer", price=497, duration=7, difficulty="medium"),
        make_tour("The Snow Adventurer", price=997, duration=4, difficulty="difficult"),
        make_tour("The City Wanderer", price=1197, duration=9, difficulty="easy"),
    ]


def run(db: Session, params, model=Tour, **kwargs) -> list[dict]:
    return QueryFeatures(db.query(model), model, params, **kwargs).filter().sort().project().paginate().all()


def names(rows: list[dict]) -> list[str]:
    return [row["name"] for row in rows]


class TestFilter:
    def test_equality(self, db_session: Session, tours):
        rows = run(db_session, [("difficulty", "easy")])
        assert sorted(names(rows)) == ["The City Wanderer", "The Forest Hiker"]

    def test_repeated_key_is_in(self, db_session: Session, tours):
        rows = run(db_session, [("difficulty", "easy"), ("difficulty", "medium")])
        assert len(rows) == 3

    def test_comparison_operators(self, db_session: Session, tours):
        rows = run(db_session, [("price[lt]", "1000"), ("duration[gte]", "5")])
        assert sorted(names(rows)) == ["The Forest Hiker", "The Sea Explorer"]

    def test_camel_case_field(self, db_session: Session, tours):
        rows = run(db_session, [("maxGroupSize[gte]", "25")])
        assert len(rows) == 4

    def test_reserved_params_not_filters(self, db_session: Session, tours):
        rows = run(db_session, {"sort": "price", "page": "1", "limit": "10", "fields": "name"})
        assert len(rows) == 4

    def test_unknown_field(self, db_session: Session, tours):
        with pytest.raises(ValidationError, match="Invalid field: colour"):
            run(db_session, [("colour", "red")])

    def test_unknown_operator(self, db_session: Session, tours):
        with pytest.raises(ValidationError, match="Invalid filter operator: ne"):
            run(db_session, [("price[ne]", "10")])

    def test_bad_value(self, db_session: Session, tours):
        with pytest.raises(ValidationError, match="Invalid value for price"):
            run(db_session, [("price[lt]", "cheap")])

    def test_hidden_field_rejected(self, db_session: Session, user: User):
        with pytest.raises(ValidationError):
            run(db_session, [("password_hash", "x")], model=User, hidden=HIDDEN_FIELDS)


class TestSort:
    def test_default_is_newest_first(self, db_session: Session, tours):
        for day, tour in enumerate(tours, start=1):
            tour.created_at = datetime(2024, 1, day)
        db_session.commit()
        rows = run(db_session, [])
        assert names(rows) == ["The City Wanderer", "The Snow Adventurer", "The Sea Explorer", "The Forest Hiker"]

    def test_default_ties_still_newest_first(self, db_session: Session, tours):
        for tour in tours:
            tour.created_at = datetime(2024, 1, 1)
        db_session.commit()
        rows = run(db_session, [])
        assert [row["id"] for row in rows] == sorted((tour.id for tour in tours), reverse=True)

    def test_ascending(self, db_session: Session, tours):
        rows = run(db_session, [("sort", "price")])
        assert [row["price"] for row in rows] == [397, 497, 997, 1197]

    def test_descending_with_secondary(self, db_session: Session, tours):
        rows = run(db_session, [("sort", "difficulty,-price")])
        assert names(rows) == ["The Snow Adventurer", "The City Wanderer", "The Forest Hiker", "The Sea Explorer"]

    def test_price_then_duration_descending(self, db_session: Session, make_tour):
        make_tour("Tour Alpha One", price=500, duration=3)
        make_tour("Tour Bravo Two", price=500, duration=8)
        make_tour("Tour Cheap Three", price=100, duration=1)
        rows = run(db_session, [("sort", "price,-duration")])
        assert names(rows) == ["Tour Cheap Three", "Tour Bravo Two", "Tour Alpha One"]

    def test_ties_broken_by_id(self, db_session: Session, tours):
        rows = run(db_session, [("sort", "difficulty")])
        assert names(rows)[1:3] == ["The Forest Hiker", "The City Wanderer"]

    def test_last_sort_wins(self, db_session: Session, tours):
        rows = run(db_session, [("sort", "price"), ("sort", "-price")])
        assert rows[0]["price"] == 1197

    def test_unknown_sort_field(self, db_session: Session, tours):
        with pytest.raises(ValidationError):
            run(db_session, [("sort", "-popularity")])


class TestProject:
    def test_selected_fields_plus_id(self, db_session: Session, tours):
        rows = run(db_session, [("fields", "name,price")])
        assert set(rows[0]) == {"id", "name", "price"}

    def test_all_columns_by_default(self, db_session: Session, tours):
        rows = run(db_session, [])
        assert {"id", "name", "slug", "price", "start_dates"} <= set(rows[0])

    def test_hidden_fields_never_returned(self, db_session: Session, user: User):
        rows = run(db_session, [], model=User, hidden=HIDDEN_FIELDS)
        assert rows[0]["email"] == "test@example.com"
        assert not set(HIDDEN_FIELDS) & set(rows[0])

    def test_hidden_field_cannot_be_projected(self, db_session: Session, user: User):
        with pytest.raises(ValidationError):
            run(db_session, [("fields", "name,password_hash")], model=User, hidden=HIDDEN_FIELDS)


class TestPaginate:
    def test_page_and_limit(self, db_session: Session, tours):
        rows = run(db_session, [("sort", "price"), ("page", "2"), ("limit", "2")])
        assert [row["price"] for row in rows] == [997, 1197]

    def test_page_past_end_is_empty(self, db_session: Session, tours):
        assert run(db_session, [("page", "5"), ("limit", "2")]) == []

    @pytest.mark.parametrize("value", ["0", "-3", "abc"])
    def test_invalid_values_fall_back_to_defaults(self, db_session: Session, tours, value: str):
        rows = run(db_session, [("page", value), ("limit", value)])
        assert len(rows) == 4

    def test_default_limit_applied(self, db_session: Session, make_tour):
        for i in range(DEFAULT_LIMIT + 1):
            make_tour(f"Tour Number {i:03d}")
        assert DEFAULT_LIMIT == 70
        assert len(run(db_session, [])) == DEFAULT_LIMIT

    def test_limit_capped(self, db_session: Session, tours, monkeypatch):
        monkeypatch.setattr("natours.services.query.MAX_LIMIT", 2)
        assert len(run(db_session, [("limit", "1000")])) == 2

    @pytest.mark.parametrize(
        "params",
        [
            [("page", str(10**19)), ("limit", "10")],
            [("page", "2"), ("limit", str(10**19))],
            [("page", str(2**62)), ("limit", "4")],
        ],
    )
    def test_huge_values_are_not_errors(self, db_session: Session, tours, params):
        assert run(db_session, params) == []

    def test_huge_page_over_http(self, client: TestClient, tour: Tour):
        response = client.get("/tours", params={"page": str(10**19), "limit": "10"})
        assert response.status_code == 200
        assert response.json()["results"] == 0

    def test_integer_filter_out_of_range(self, client: TestClient, tour: Tour):
        response = client.get("/tours", params={"duration[gte]": str(10**19)})
        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid value for duration")


def test_to_snake():
    assert to_snake("ratingsAverage") == "ratings_average"
    assert to_snake("price") == "price"
    assert to_snake("max_group_size") == "max_group_size"
