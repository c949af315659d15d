from pathlib import Path

from assetflow.fileset import (
    expand_braces,
    expand_globs,
    glob_base,
    matches,
    relative_to_base,
    watch_roots,
)


def touch(root: Path, *names: str) -> None:
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(name)


def test_expand_braces():
    assert expand_braces("a/*.{png,jpg}") == ["a/*.png", "a/*.jpg"]
    assert expand_braces("{x,y}/{1,2}") == ["x/1", "x/2", "y/1", "y/2"]
    assert expand_braces("plain") == ["plain"]


def test_glob_base():
    assert glob_base("app/assets/images/**/*.png") == "app/assets/images"
    assert glob_base("app/assets/*.html") == "app/assets"
    assert glob_base("*.js") == "."
    assert glob_base("src/{a,b}/x.js") == "src"


def test_expand_globs_follows_pattern_order(tmp_path):
    touch(tmp_path, "js/vendor/jquery.js", "js/app.js", "js/b.js", "js/a.js")

    found = expand_globs(["js/vendor/*.js", "js/**/*.js"], tmp_path)

    names = [path.relative_to(tmp_path).as_posix() for path, _ in found]
    assert names == ["js/vendor/jquery.js", "js/a.js", "js/app.js", "js/b.js"]
    assert found[0][1] == tmp_path / "js/vendor"
    assert found[1][1] == tmp_path / "js"


def test_expand_globs_exclusion(tmp_path):
    touch(tmp_path, "scss/main.scss", "scss/_vars.scss", "scss/legacy/old.scss")

    found = expand_globs(["scss/**/*.scss", "!scss/legacy/**"], tmp_path)

    names = sorted(path.name for path, _ in found)
    assert names == ["_vars.scss", "main.scss"]


def test_matches(tmp_path):
    patterns = ["app/assets/images/**/*.{png,gif}", "!app/assets/images/tmp/*"]

    assert matches(tmp_path / "app/assets/images/logo.png", patterns, tmp_path)
    assert matches(tmp_path / "app/assets/images/icons/a.gif", patterns, tmp_path)
    assert not matches(tmp_path / "app/assets/images/logo.svg", patterns, tmp_path)
    assert not matches(tmp_path / "app/assets/images/tmp/x.png", patterns, tmp_path)
    assert not matches(tmp_path / "app/assets/js/logo.png", patterns, tmp_path)


def test_watch_roots_skips_missing_and_nested(tmp_path):
    (tmp_path / "app/assets/scss/partials").mkdir(parents=True)

    roots = watch_roots(
        ["app/assets/scss/**/*.scss", "app/assets/scss/partials/*.scss", "app/missing/*.js"],
        tmp_path,
    )

    assert roots == [tmp_path / "app/assets/scss"]


def test_relative_to_base(tmp_path):
    base = tmp_path / "app/assets"
    inside = tmp_path / "app/assets/lib/x.js"
    outside = tmp_path / "vendor/y.js"

    assert relative_to_base(inside, base) == Path("lib/x.js")
    assert relative_to_base(outside, base) == Path("y.js")
    assert relative_to_base(outside, base, fallback=tmp_path) == Path("vendor/y.js")
