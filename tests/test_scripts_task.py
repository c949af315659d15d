import pytest

from assetflow.errors import LintError
from assetflow.tasks.base import minified_path
from assetflow.tasks.scripts import concatenate, run_scripts


@pytest.fixture
def ctx(project, context_for, write, tmp_path):
    write(tmp_path / "app/assets/js/a.js", "var first = 1;\n")
    write(tmp_path / "app/assets/js/b.js", "var second = first + 1;\n")
    return context_for(project())


def test_concatenate_is_plain_join():
    assert concatenate(["a;", "b;"]) == "a;b;"
    assert concatenate(["a;", "b;"], "\n") == "a;\nb;"


def test_minified_path(tmp_path):
    assert minified_path(tmp_path / "main.js") == tmp_path / "main.min.js"
    assert minified_path(tmp_path / "site.css") == tmp_path / "site.min.css"


def test_bundles_in_glob_order_and_minifies(ctx):
    result = run_scripts(ctx)

    bundle = ctx.config.scripts_directory / "main.js"
    minified = ctx.config.scripts_directory / "main.min.js"
    assert bundle.read_text() == "var first = 1;\nvar second = first + 1;\n"
    assert "var second=first+1" in minified.read_text()
    assert len(minified.read_text()) < len(bundle.read_text())
    assert result.files_written == [bundle, minified]


def test_lint_error_fails_before_writing(ctx, write, tmp_path):
    bundle = write(ctx.config.scripts_directory / "main.js", "previous build")
    write(tmp_path / "app/assets/js/c.js", "function go() {\n  debugger;\n}\n")

    with pytest.raises(LintError) as excinfo:
        run_scripts(ctx)

    assert "c.js:2:3" in str(excinfo.value)
    assert "no-debugger" in str(excinfo.value)
    assert bundle.read_text() == "previous build"
    assert not (ctx.config.scripts_directory / "main.min.js").exists()


def test_syntax_error_fails(ctx, write, tmp_path):
    write(tmp_path / "app/assets/js/broken.js", "var = ;\n")

    with pytest.raises(LintError) as excinfo:
        run_scripts(ctx)

    assert excinfo.value.violations[0].rule == "syntax"
    assert excinfo.value.violations[0].path.name == "broken.js"


def test_warnings_do_not_fail(ctx, write, tmp_path):
    write(tmp_path / "app/assets/js/c.js", "eval('1');\n")

    result = run_scripts(ctx)

    assert len(result.warnings) == 1
    assert "no-eval" in result.warnings[0]
    assert (ctx.config.scripts_directory / "main.js").exists()


def test_no_matches_writes_nothing(project, context_for):
    ctx = context_for(project())

    result = run_scripts(ctx)

    assert result.files_written == []
    assert not ctx.config.scripts_directory.exists()
