from __future__ import annotations

import pytest

from jellysync.domain.errors import SyncInvalidTemplate
from jellysync.domain.templates import (
    ReferenceTable,
    Resolved,
    Unresolved,
    evaluate,
    parse_path,
)


def test_parse_path_supports_names_indices_and_quoted_keys() -> None:
    assert parse_path("contracts[0].id") == ("contracts", 0, "id")
    assert parse_path("contracts[1][2].data['mirror-id']") == (
        "contracts",
        1,
        2,
        "data",
        "mirror-id",
    )
    assert parse_path(' hello["a b"] ') == ("hello", "a b")
    assert parse_path("contracts[-1]") == ("contracts", -1)


@pytest.mark.parametrize("expression", ["", "0abc", "contracts[", "a..b", "a + b", "f(x)"])
def test_parse_path_rejects_other_expressions(expression: str) -> None:
    with pytest.raises(SyncInvalidTemplate):
        parse_path(expression)


def test_evaluate_replaces_nested_placeholders() -> None:
    environment = {"contracts": [{"id": "abc", "slug": "thread-1"}]}
    card = {
        "type": "message@1.0.0",
        "data": {
            "target": {"$eval": "contracts[0].id"},
            "payload": [{"slug": {"$eval": "contracts[0].slug"}}, 3, "text"],
        },
    }

    result = evaluate(card, environment)

    assert result == Resolved(
        {
            "type": "message@1.0.0",
            "data": {"target": "abc", "payload": [{"slug": "thread-1"}, 3, "text"]},
        }
    )
    assert card["data"]["target"] == {"$eval": "contracts[0].id"}


def test_evaluate_passes_through_falsy_and_scalar_nodes() -> None:
    assert evaluate(None, {}) == Resolved(None)
    assert evaluate({}, {}) == Resolved({})
    assert evaluate(0, {}) == Resolved(0)
    assert evaluate("plain", {}) == Resolved("plain")


def test_missing_reference_makes_the_whole_node_unresolved() -> None:
    card = {"data": {"deep": {"target": {"$eval": "contracts[3].id"}}}, "slug": "x"}

    result = evaluate(card, {"contracts": [{"id": "abc"}]})

    assert isinstance(result, Unresolved)
    assert result.expression == "contracts[3].id"


def test_null_reference_is_unresolved() -> None:
    result = evaluate({"$eval": "contracts[0].id"}, {"contracts": [None]})

    assert isinstance(result, Unresolved)


def test_malformed_expression_raises() -> None:
    with pytest.raises(SyncInvalidTemplate):
        evaluate({"data": {"$eval": "contracts[0"}}, {"contracts": []})
    with pytest.raises(SyncInvalidTemplate):
        evaluate({"$eval": 3}, {})


def test_reference_table_layout_follows_batch_sizes() -> None:
    table = ReferenceTable()

    first = table.open_batch(1)
    second = table.open_batch(2)
    table.record(first, 0, {"id": "a"})
    table.record(second, 1, {"id": "c"})

    assert table.as_environment() == {"contracts": [{"id": "a"}, [None, {"id": "c"}]]}
    assert evaluate({"$eval": "contracts[1][1].id"}, table.as_environment()) == Resolved("c")
    assert isinstance(
        evaluate({"$eval": "contracts[1][0].id"}, table.as_environment()), Unresolved
    )


def test_reference_table_keeps_initial_names() -> None:
    table = ReferenceTable({"event": {"id": "evt"}})

    assert evaluate({"$eval": "event.id"}, table.as_environment()) == Resolved("evt")
