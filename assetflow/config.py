"""
Configuration loader for the asset build manifest and application settings.

Supports loading from:
1. YAML manifest (build.config.yaml next to the project sources)
2. Environment variables (.env or the shell), which take precedence

Environment overrides:
- ASSETFLOW_PUBLIC_DIRECTORY: output directory
- ASSETFLOW_SOURCE_MAPS, ASSETFLOW_MINIFY_IMAGES, ASSETFLOW_AUTO_RELOAD: flags

Usage:
    from assetflow.config import load_config, load_app_settings

    config = load_config(Path("build.config.yaml"))
    settings = load_app_settings()

The returned objects are immutable and are passed explicitly to every task.
"""

from __future__ import annotations

import copy
import logging
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv

from assetflow.errors import ConfigError
from assetflow.tasks.prefixer import prefix_table

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "build.config.yaml"
DEFAULT_LIVERELOAD_PORT = 35729

ENV_OVERRIDES = {
    "public_directory": "ASSETFLOW_PUBLIC_DIRECTORY",
    "source_maps": "ASSETFLOW_SOURCE_MAPS",
    "minify_images": "ASSETFLOW_MINIFY_IMAGES",
    "auto_reload": "ASSETFLOW_AUTO_RELOAD",
}

TRUE_VALUES = {"1", "true", "yes", "y", "on"}
FALSE_VALUES = {"0", "false", "no", "n", "off"}


def _default_manifest() -> Dict[str, Any]:
    """Return the default manifest used when no config file exists."""
    return {
        "public_directory": "public/",
        "source_maps": True,
        "minify_images": True,
        "auto_reload": True,
        "copy_base": "app/assets",
        "files": {
            "scripts": ["app/assets/js/**/*.js"],
            "styles": ["app/assets/scss/**/*.scss"],
            "watch_styles": ["app/assets/scss/**/*.scss"],
            "images": ["app/assets/images/**/*.{png,jpg,jpeg,gif,svg}"],
            "copy": ["app/assets/lib/**/*", "app/assets/*.html"],
            "node_modules": ["node_modules"],
            "styles_map": "maps",
        },
        "scripts": {
            "bundle_name": "main.js",
            "separator": "",
            "lint_config": ".eslintrc.yml",
        },
        "styles": {
            "output_style": "expanded",
            "browsers": "last 2 versions",
            "lint_config": ".sass-lint.yml",
        },
        "watch": {
            "debounce_seconds": 0.2,
        },
        "develop": {
            "app_command": "python app.py",
            "watch_paths": ["app"],
            "watch_extensions": ["nunjucks"],
            "ready_pattern": "^Server listening on",
        },
        "notifications": {
            "enabled": True,
            "title": "Error",
            "sound": "Sosumi",
        },
    }


@dataclass(frozen=True)
class FileGroups:
    """Glob patterns per asset category."""
    scripts: Tuple[str, ...] = ()
    styles: Tuple[str, ...] = ()
    watch_styles: Tuple[str, ...] = ()
    images: Tuple[str, ...] = ()
    copy: Tuple[str, ...] = ()
    node_modules: Tuple[str, ...] = ()
    styles_map: str = "maps"


@dataclass(frozen=True)
class ScriptOptions:
    bundle_name: str = "main.js"
    separator: str = ""
    lint_config: Optional[Path] = None


@dataclass(frozen=True)
class StyleOptions:
    output_style: str = "expanded"
    browsers: str = "last 2 versions"
    lint_config: Optional[Path] = None


@dataclass(frozen=True)
class WatchOptions:
    debounce_seconds: float = 0.2


@dataclass(frozen=True)
class DevelopOptions:
    app_command: Tuple[str, ...] = ("python", "app.py")
    watch_paths: Tuple[Path, ...] = ()
    watch_extensions: Tuple[str, ...] = ("nunjucks",)
    ready_pattern: str = "^Server listening on"


@dataclass(frozen=True)
class NotifyOptions:
    enabled: bool = True
    title: str = "Error"
    sound: str = "Sosumi"


@dataclass(frozen=True)
class BuildConfig:
    """
    The asset manifest.

    Every glob is relative to ``root`` (the manifest's directory) and every
    Path field is already absolute.
    """
    root: Path
    public_directory: Path
    copy_base: Path
    files: FileGroups
    source_maps: bool = True
    minify_images: bool = True
    auto_reload: bool = True
    scripts: ScriptOptions = field(default_factory=ScriptOptions)
    styles: StyleOptions = field(default_factory=StyleOptions)
    watch: WatchOptions = field(default_factory=WatchOptions)
    develop: DevelopOptions = field(default_factory=DevelopOptions)
    notifications: NotifyOptions = field(default_factory=NotifyOptions)

    @property
    def scripts_directory(self) -> Path:
        return self.public_directory / "js"

    @property
    def styles_directory(self) -> Path:
        return self.public_directory / "css"

    @property
    def images_directory(self) -> Path:
        return self.public_directory / "images"

    @property
    def include_paths(self) -> List[Path]:
        return [self.root / p for p in self.files.node_modules]


@dataclass(frozen=True)
class AppSettings:
    """Environment of the supervised web application."""
    env: str = "development"
    port: int = 3000
    livereload_port: int = DEFAULT_LIVERELOAD_PORT
    db_host: Optional[str] = None
    db_port: Optional[int] = None

    def child_env(self, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Environment for the application process."""
        env = dict(os.environ if base is None else base)
        env["APP_ENV"] = self.env
        env["PORT"] = str(self.port)
        env["LIVERELOAD_PORT"] = str(self.livereload_port)
        if self.db_host:
            env["DB_HOST"] = self.db_host
        if self.db_port is not None:
            env["DB_PORT"] = str(self.db_port)
        env.setdefault("PYTHONUNBUFFERED", "1")
        return env


def load_env_file(path: Optional[Path] = None) -> None:
    """Load a .env file if present. Existing environment variables win."""
    if path is None:
        path = Path.cwd() / ".env"
    if path.exists():
        load_dotenv(dotenv_path=path, override=False)
        logger.debug(f"Loaded environment from {path}")


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _as_patterns(value: Any, name: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise ConfigError(f"{name} must be a glob string or a list of glob strings")


def _as_str(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{name} must be a non-empty string")
    return value


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _as_browsers(value: Any) -> str:
    browsers = _as_str(value, "styles.browsers")
    prefix_table(browsers)
    return browsers


def _optional_path(root: Path, value: Any, name: str) -> Optional[Path]:
    if value in (None, ""):
        return None
    return root / _as_str(value, name)


def _apply_env_overrides(manifest: Dict[str, Any], environ: Mapping[str, str]) -> None:
    for key, var_name in ENV_OVERRIDES.items():
        value = environ.get(var_name)
        if value is not None and value.strip() != "":
            logger.debug(f"Config override from {var_name}")
            manifest[key] = value


def read_manifest(path: Path) -> Dict[str, Any]:
    """Read the raw YAML manifest merged over the defaults."""
    defaults = _default_manifest()

    if not path.exists():
        logger.warning(f"Config not found: {path}, using defaults")
        return defaults

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")

    return _merge(defaults, data)


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> BuildConfig:
    """
    Load the build manifest.

    Args:
        path: Manifest path; defaults to build.config.yaml in the working directory
        environ: Environment mapping used for overrides (defaults to os.environ)

    Returns:
        BuildConfig with absolute paths
    """
    path = Path(path) if path is not None else Path.cwd() / CONFIG_FILENAME
    root = path.resolve().parent
    manifest = read_manifest(path)
    _apply_env_overrides(manifest, os.environ if environ is None else environ)

    files = manifest.get("files") or {}
    scripts = manifest.get("scripts") or {}
    styles = manifest.get("styles") or {}
    watch = manifest.get("watch") or {}
    develop = manifest.get("develop") or {}
    notifications = manifest.get("notifications") or {}

    file_groups = FileGroups(
        scripts=_as_patterns(files.get("scripts"), "files.scripts"),
        styles=_as_patterns(files.get("styles"), "files.styles"),
        watch_styles=_as_patterns(
            files.get("watch_styles", files.get("styles")), "files.watch_styles"
        ),
        images=_as_patterns(files.get("images"), "files.images"),
        copy=_as_patterns(files.get("copy"), "files.copy"),
        node_modules=_as_patterns(files.get("node_modules"), "files.node_modules"),
        styles_map=_as_str(files.get("styles_map", "maps"), "files.styles_map"),
    )

    app_command = develop.get("app_command", "python app.py")
    if isinstance(app_command, str):
        app_command = shlex.split(app_command)
    if not app_command or not all(isinstance(p, str) for p in app_command):
        raise ConfigError("develop.app_command must be a command string or list")

    try:
        debounce = float(watch.get("debounce_seconds", 0.2))
    except (TypeError, ValueError):
        raise ConfigError("watch.debounce_seconds must be a number") from None
    if debounce < 0:
        raise ConfigError("watch.debounce_seconds must not be negative")

    return BuildConfig(
        root=root,
        public_directory=root / _as_str(manifest.get("public_directory"), "public_directory"),
        copy_base=root / _as_str(manifest.get("copy_base", "."), "copy_base"),
        files=file_groups,
        source_maps=_as_bool(manifest.get("source_maps", True), "source_maps"),
        minify_images=_as_bool(manifest.get("minify_images", True), "minify_images"),
        auto_reload=_as_bool(manifest.get("auto_reload", True), "auto_reload"),
        scripts=ScriptOptions(
            bundle_name=_as_str(scripts.get("bundle_name", "main.js"), "scripts.bundle_name"),
            separator=str(scripts.get("separator") or ""),
            lint_config=_optional_path(root, scripts.get("lint_config"), "scripts.lint_config"),
        ),
        styles=StyleOptions(
            output_style=_as_str(styles.get("output_style", "expanded"), "styles.output_style"),
            browsers=_as_browsers(styles.get("browsers", "last 2 versions")),
            lint_config=_optional_path(root, styles.get("lint_config"), "styles.lint_config"),
        ),
        watch=WatchOptions(debounce_seconds=debounce),
        develop=DevelopOptions(
            app_command=tuple(app_command),
            watch_paths=tuple(root / p for p in _as_patterns(develop.get("watch_paths"), "develop.watch_paths")),
            watch_extensions=tuple(
                e.lstrip(".") for e in _as_patterns(develop.get("watch_extensions"), "develop.watch_extensions")
            ),
            ready_pattern=_as_str(develop.get("ready_pattern", "^Server listening on"), "develop.ready_pattern"),
        ),
        notifications=NotifyOptions(
            enabled=_as_bool(notifications.get("enabled", True), "notifications.enabled"),
            title=str(notifications.get("title") or "Error"),
            sound=str(notifications.get("sound") or ""),
        ),
    )


def load_app_settings(environ: Optional[Mapping[str, str]] = None) -> AppSettings:
    """Read the application environment (APP_ENV, PORT, LIVERELOAD_PORT, DB_*)."""
    environ = os.environ if environ is None else environ

    db_port = environ.get("DB_PORT")
    return AppSettings(
        env=environ.get("APP_ENV") or "development",
        port=_as_int(environ.get("PORT") or 3000, "PORT"),
        livereload_port=_as_int(environ.get("LIVERELOAD_PORT") or DEFAULT_LIVERELOAD_PORT, "LIVERELOAD_PORT"),
        db_host=environ.get("DB_HOST") or None,
        db_port=_as_int(db_port, "DB_PORT") if db_port else None,
    )
