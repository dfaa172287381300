import pytest

from pomigrate.services.idempotency import ensure, get_or_create


def test_existing_entity_is_reused():
    created = []

    entity, was_created = ensure("sheet", lambda: "existing", lambda: created.append(1) or "new")

    assert entity == "existing"
    assert was_created is False
    assert created == []


def test_missing_entity_is_created_once():
    store = {}

    def create():
        store["sheet"] = "new"
        return "new"

    first = get_or_create("sheet", lambda: store.get("sheet"), create)
    second, was_created = ensure("sheet", lambda: store.get("sheet"), create)

    assert first == second == "new"
    assert was_created is False


def test_errors_propagate_without_retry():
    calls = []

    def lookup():
        calls.append(1)
        raise RuntimeError("lookup failed")

    with pytest.raises(RuntimeError):
        ensure("sheet", lookup, lambda: "new")
    assert len(calls) == 1
