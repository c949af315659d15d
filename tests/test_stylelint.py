from pathlib import Path

from assetflow.validation.stylelint import StyleLinter, strip_comments


def rules(report):
    return sorted((v.rule, v.line) for v in report.errors + report.warnings)


def test_default_rules_warn():
    source = (
        "#main {\n"
        "  color: red !important; \n"
        "}\n"
        ".empty {}\n"
        "@debug 'x';\n"
    )

    report = StyleLinter().lint_source(source, Path("a.scss"))

    assert report.valid
    assert rules(report) == [
        ("no-debug", 5),
        ("no-empty-rulesets", 4),
        ("no-ids", 1),
        ("no-important", 2),
        ("no-trailing-whitespace", 2),
    ]


def test_comments_are_ignored():
    source = "// #legacy { color: red !important; }\n/* #old {\n} */\n.a {\n  color: red;\n}\n"

    report = StyleLinter().lint_source(source, Path("a.scss"))

    assert rules(report) == []


def test_hex_colors_and_interpolation_are_not_ids():
    source = ".a {\n  color: #fff;\n}\n.b-#{$name} {\n  margin: 0;\n}\n"

    report = StyleLinter().lint_source(source, Path("a.scss"))

    assert rules(report) == []


def test_config_severity_and_options(tmp_path):
    config = tmp_path / ".sass-lint.yml"
    config.write_text("rules:\n  no-ids: 2\n  max-line-length: [1, {length: 20}]\n")
    source = "#header {\n  background-color: #abcdef;\n}\n"

    report = StyleLinter(config).lint_source(source, Path("a.scss"))

    assert [(v.rule, v.line, v.column) for v in report.errors] == [("no-ids", 1, 1)]
    assert [(v.rule, v.line) for v in report.warnings] == [("max-line-length", 2)]


def test_strip_comments_keeps_positions():
    lines = strip_comments("a /* b */ c\n// d\n")

    assert lines == ["a         c", "    "]
