"""Both backends, fed the same script, must answer identically."""

from dataclasses import asdict

from dineout.engagement import rules
from dineout.engagement.errors import EngagementError
from dineout.engagement.records import RestaurantSnapshot

SNAP = RestaurantSnapshot(name="Taqueria", address="24th St", rating=4.4, price_level=1)


def _scrub(value):
    """Drop generated ids so results from different stores compare equal."""
    if isinstance(value, list):
        return [_scrub(v) for v in value]
    if isinstance(value, tuple):
        return tuple(_scrub(v) for v in value)
    if isinstance(value, dict):
        return {k: _scrub(v) for k, v in value.items() if k != "id"}
    if hasattr(value, "__dataclass_fields__"):
        return _scrub(asdict(value))
    return value


def _run_script(store) -> list:
    out: list = []
    ids: dict[str, str] = {}

    def call(label, fn, *args, **kwargs):
        try:
            result = fn(*args, **kwargs)
        except EngagementError as exc:
            out.append((label, "error", exc.kind, exc.message))
            return None
        out.append((label, "ok", _scrub(result)))
        return result

    for i, (user, rating) in enumerate([("u1", 5), ("u2", 4), ("u3", 4), ("u4", 4), ("u5", 1)]):
        review = call(f"create-{i}", store.create_review, user, "R", rating, f"Review number {i} is long enough", "t")
        ids[user] = review.id

    call("dup", store.create_review, "u1", "R", 3, "Another long enough text")
    call("bad-rating", store.create_review, "u6", "R", 0, "Another long enough text")
    call("bad-content", store.create_review, "u6", "R", 3, " short ")
    call("not-owner", store.update_review, "u2", ids["u1"], rating=1)
    call("missing", store.update_review, "u2", "nope", rating=1)
    call("update", store.update_review, "u2", ids["u2"], rating=2, title="")
    call("report", store.report_review, ids["u5"])
    call("report-again", store.report_review, ids["u5"])
    for _ in range(3):
        call("helpful", store.mark_review_helpful, ids["u3"])
    call("helpful-missing", store.mark_review_helpful, "nope")
    call("page-1", store.get_reviews_for_restaurant, "R", 2, 0)
    call("page-2", store.get_reviews_for_restaurant, "R", 2, 2)
    call("stats", store.get_review_stats, "R")
    call("user-reviews", store.get_user_reviews, "u5")
    call("delete-not-owner", store.delete_review, "u1", ids["u4"])
    call("delete", store.delete_review, "u4", ids["u4"])
    call("stats-after-delete", store.get_review_stats, "R")
    call("user-review", store.get_user_review, "u5", "R")

    for rid in ["A", "B", "A", "C"]:
        call(f"toggle-{rid}", store.toggle_favorite, "u1", rid, SNAP)
    call("add-existing", store.add_favorite, "u1", "B", SNAP)
    call("favorites", store.get_user_favorites, "u1")
    call("count", store.get_favorite_count, "u1")
    call("remove", store.remove_favorite, "u1", "C")
    call("remove-again", store.remove_favorite, "u1", "C")
    call("is-favorited", store.is_favorited, "u1", "B")
    return out


def test_backends_are_indistinguishable(make_store):
    memory = make_store("memory")
    sql = make_store("sql")
    mem_results = _run_script(memory)
    sql_results = _run_script(sql)

    assert len(mem_results) == len(sql_results)
    for mem, db in zip(mem_results, sql_results):
        assert mem == db, mem[0]


def test_script_exercises_expected_outcomes(make_store):
    results = {label: rest for label, *rest in _run_script(make_store("memory"))}

    assert results["dup"][:2] == ["error", "duplicate_review"]
    assert results["bad-rating"][:2] == ["error", "invalid_rating"]
    assert results["bad-content"][:2] == ["error", "invalid_content"]
    assert results["not-owner"][:2] == ["error", "unauthorized"]
    assert results["missing"][:2] == ["error", "not_found"]
    assert results["helpful"] == ["ok", 3]
    # u1=5, u2=2, u3=4, u4=4 (u5 reported) -> 15 / 4 = 3.75 -> 3.8
    assert results["stats"][1]["average_rating"] == 3.8
    assert results["stats"][1]["total_ratings"] == 4
    assert results["page-1"][1]["total"] == 4
    assert results["stats-after-delete"][1]["rating_distribution"] == {1: 0, 2: 1, 3: 0, 4: 1, 5: 1}
    assert results["count"] == ["ok", 2]
    assert results["remove"] == ["ok", True]
    assert results["remove-again"] == ["ok", False]


def test_page_window_bounds_match(make_store):
    outcomes = {}
    for backend in ("memory", "sql"):
        store = make_store(backend)
        store.create_review("u1", "R", 4, "Long enough review text")
        results = []
        for offset in (2**63, rules.MAX_PAGE_VALUE + 1, rules.MAX_PAGE_VALUE):
            try:
                page = store.get_reviews_for_restaurant("R", 10, offset)
            except ValueError:
                results.append("rejected")
            else:
                results.append(len(page.reviews))
        outcomes[backend] = results

    assert outcomes["memory"] == outcomes["sql"] == ["rejected", "rejected", 0]
