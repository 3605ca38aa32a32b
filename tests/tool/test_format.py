"""Tests for the format library."""

from chart_identity.tool.format import (
    JsonFormatter,
    PrintFormatter,
    YamlFormatter,
    format_columns,
    formatter,
)


def test_format_columns_empty_rows() -> None:
    """Tests with only a header row."""
    assert list(format_columns(["a", "b", "c"], [])) == ["a    b    c    "]


def test_format_columns_rows() -> None:
    """Tests format with normal rows"""
    assert list(
        format_columns(
            ["release", "namespace"], [["app1", "ns1"], ["app22", "namespace2"]]
        )
    ) == [
        "release    namespace     ",
        "app1       ns1           ",
        "app22      namespace2    ",
    ]


def test_print_formatter_empty() -> None:
    """Print formatting with empty data."""
    assert list(PrintFormatter(["name"]).format([])) == []


def test_print_formatter_keys() -> None:
    """Print formatting only the requested keys."""
    formatter = PrintFormatter(keys=["fullName"])
    assert list(
        formatter.format(
            [
                {"fullName": "app1-springboot-ocdemo", "namespace": "ns1"},
                {"fullName": "app2-springboot-ocdemo", "namespace": "ns1"},
            ]
        )
    ) == [
        "FULLNAME                  ",
        "app1-springboot-ocdemo    ",
        "app2-springboot-ocdemo    ",
    ]


def test_yaml_formatter() -> None:
    """Yaml formatting writes one document per object."""
    assert list(
        YamlFormatter().format(
            [
                {"kind": "Service", "metadata": {"name": "app1-springboot-ocdemo"}},
                {"kind": "Route", "metadata": {"name": "app1-springboot-ocdemo"}},
            ]
        )
    ) == [
        "---",
        "kind: Service",
        "metadata:",
        "  name: app1-springboot-ocdemo",
        "---",
        "kind: Route",
        "metadata:",
        "  name: app1-springboot-ocdemo",
    ]


def test_json_formatter() -> None:
    """Json formatting writes a list of objects."""
    assert list(JsonFormatter().format([{"fullName": "app1-springboot-ocdemo"}])) == [
        "[",
        "    {",
        '        "fullName": "app1-springboot-ocdemo"',
        "    }",
        "]",
    ]


def test_formatter_choice() -> None:
    """Test choosing the formatter for the output flag."""
    assert isinstance(formatter("yaml", []), YamlFormatter)
    assert isinstance(formatter("json", []), JsonFormatter)
    assert isinstance(formatter("wide", ["name"]), PrintFormatter)
