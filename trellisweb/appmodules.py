"""Application directory layout and the loaded application modules."""

from __future__ import annotations

import logging
import os
import posixpath
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

TESTRUNNER_IMPORT_PATH = "trellisweb/modules/testrunner"


@dataclass(frozen=True)
class Module:
    """An application module: its name, import path and directory."""

    name: str
    import_path: str
    path: str


@dataclass
class AppPaths:
    """Where an application's code, configuration and templates are found.

    The search lists are ordered by priority: earlier paths win.
    """

    import_path: str
    source_path: str
    framework_path: str
    base_path: str
    app_path: str
    views_path: str
    code_paths: list[str] = field(default_factory=list)
    conf_paths: list[str] = field(default_factory=list)
    template_paths: list[str] = field(default_factory=list)
    testrunner_import_path: str = TESTRUNNER_IMPORT_PATH


def _join(*parts: str) -> str:
    return posixpath.normpath(posixpath.join(*parts))


def make_app_paths(source_path: str, import_path: str, framework_path: str) -> AppPaths:
    """Lay out the application directories below source_path/import_path."""
    source = posixpath.normpath(source_path)
    framework = posixpath.normpath(framework_path)
    base = _join(source, import_path)
    app = _join(base, "app")
    views = _join(app, "views")
    return AppPaths(
        import_path=import_path.rstrip("/"),
        source_path=source,
        framework_path=framework,
        base_path=base,
        app_path=app,
        views_path=views,
        code_paths=[app],
        conf_paths=[_join(base, "conf"), _join(framework, "conf")],
        template_paths=[views, _join(framework, "templates")],
    )


def add_module(
    paths: AppPaths,
    modules: list[Module],
    name: str,
    import_path: str,
    module_path: str,
) -> Module:
    """Register a module and add its code and view directories to the search paths."""
    module = Module(name=name, import_path=import_path, path=module_path)
    modules.append(module)
    code_path = _join(module_path, "app")
    if os.path.isdir(code_path):
        paths.code_paths.append(code_path)
        views_path = _join(module_path, "app", "views")
        if os.path.isdir(views_path):
            paths.template_paths.append(views_path)
    log.info("Loaded module %s", posixpath.basename(posixpath.normpath(module_path)))
    # The test runner cannot add the application's tests directory itself.
    if import_path == paths.testrunner_import_path:
        paths.code_paths.append(_join(paths.base_path, "tests"))
    return module


def module_by_name(modules: list[Module], name: str) -> Module | None:
    """Return the first loaded module with the given name, or None."""
    return next((module for module in modules if module.name == name), None)