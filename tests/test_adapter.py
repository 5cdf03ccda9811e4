from dataclasses import dataclass
from relaypager.adapter import AdapterOptions, LoadInput, LoadOrder, default_cursor


@dataclass
class Row:
    id: int
    name: str


def test_default_cursor_attribute():
    assert default_cursor(Row(7, "seven"), "id", None) == "7"
    assert default_cursor(Row(7, "seven"), "name", None) == "seven"


def test_default_cursor_mapping():
    assert default_cursor({"id": 3}, "id", None) == "3"


def test_options_defaults():
    options = AdapterOptions()
    assert options.resolve_limit(None) == 100
    assert options.resolve_default(None) == 20
    assert options.cursor(Row(1, "one"), "id", None) == "1"


def test_options_numbers():
    options = AdapterOptions(limit=9, default=5)
    assert options.resolve_limit({}) == 9
    assert options.resolve_default({}) == 5


def test_options_functions():
    options = AdapterOptions(
        limit=lambda context: context["limit"],
        default=lambda context: context["limit"] // 2,
    )
    assert options.resolve_limit({"limit": 50}) == 50
    assert options.resolve_default({"limit": 50}) == 25


def test_load_input_defaults():
    input = LoadInput(filter=None, primary="id", max=3, order=LoadOrder.ASC)
    assert input.fields == []
    assert tuple(input.anchors) == ()
