#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Template rendering with escaping chosen by the kind of file produced.

Every template is registered with a kind and the context fields it cannot do
without. The kind decides how interpolated values are escaped:

- ``shell``: POSIX single-quote quoting (``AppRun`` and other scripts)
- ``xml``: XML entity escaping (WiX sources)
- ``nsis``: NSIS string escaping (``$$``, ``$\\"``)
- ``desktop``: freedesktop desktop-entry value escaping
- ``applescript``: AppleScript string escaping (Finder layout of disk images)
- ``text``: no escaping (control files, ``.PKGINFO``)

Missing optional fields render blank; missing required fields raise
``TemplateError`` before rendering starts.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import enum
import functools
from pathlib import Path
import shlex
from typing import Any

from attrs import define
import jinja2
from markupsafe import Markup
from provide.foundation import logger

from shipwright.exceptions import TemplateError


class TemplateKind(enum.Enum):
    TEXT = "text"
    SHELL = "shell"
    XML = "xml"
    NSIS = "nsis"
    DESKTOP = "desktop"
    APPLESCRIPT = "applescript"


@define(frozen=True)
class TemplateSpec:
    filename: str
    kind: TemplateKind
    required: tuple[str, ...] = ()


TEMPLATES: dict[str, TemplateSpec] = {
    "deb/control": TemplateSpec(
        "deb/control.j2",
        TemplateKind.TEXT,
        ("package", "version", "architecture", "maintainer", "description"),
    ),
    "pacman/PKGINFO": TemplateSpec(
        "pacman/PKGINFO.j2",
        TemplateKind.TEXT,
        ("pkgname", "pkgver", "arch", "builddate", "size"),
    ),
    "appimage/AppRun": TemplateSpec(
        "appimage/AppRun.j2",
        TemplateKind.SHELL,
        ("exe_path",),
    ),
    "linux/desktop": TemplateSpec(
        "linux/desktop.j2",
        TemplateKind.DESKTOP,
        ("name", "exec", "icon"),
    ),
    "wix/main.wxs": TemplateSpec(
        "wix/main.wxs.j2",
        TemplateKind.XML,
        ("product_name", "version", "manufacturer", "upgrade_code", "language", "binaries"),
    ),
    "nsis/installer.nsi": TemplateSpec(
        "nsis/installer.nsi.j2",
        TemplateKind.NSIS,
        ("product_name", "version", "manufacturer", "identifier", "upgrade_code", "out_file", "binaries"),
    ),
    "dmg/layout.applescript": TemplateSpec(
        "dmg/layout.applescript.j2",
        TemplateKind.APPLESCRIPT,
        ("volume_name", "app_name", "window_size", "app_position", "applications_position"),
    ),
}


def escape_shell(value: str) -> str:
    return shlex.quote(value)


def escape_nsis(value: str) -> str:
    return (
        value.replace("$", "$$")
        .replace('"', '$\\"')
        .replace("\r", "$\\r")
        .replace("\n", "$\\n")
        .replace("\t", "$\\t")
    )


def escape_desktop(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace("\t", "\\t").replace("\r", "\\r")


def escape_applescript(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _finalizer(escape: Callable[[str], str] | None) -> Callable[[Any], Any]:
    def finalize(value: Any) -> Any:
        if value is None or isinstance(value, jinja2.Undefined):
            return ""
        if escape is None or isinstance(value, Markup):
            return value
        return escape(str(value))

    return finalize


_ESCAPERS: dict[TemplateKind, Callable[[str], str] | None] = {
    TemplateKind.TEXT: None,
    TemplateKind.XML: None,
    TemplateKind.SHELL: escape_shell,
    TemplateKind.NSIS: escape_nsis,
    TemplateKind.DESKTOP: escape_desktop,
    TemplateKind.APPLESCRIPT: escape_applescript,
}


def _verbatim(value: Any) -> Markup:
    """Mark a value as already safe for the target file kind."""
    return Markup(str(value))


class TemplateRenderer:
    """Renders the packaged templates, one Jinja environment per file kind."""

    def __init__(self, loader: jinja2.BaseLoader | None = None) -> None:
        self._loader = loader or jinja2.PackageLoader("shipwright", "templates")
        self._environments: dict[TemplateKind, jinja2.Environment] = {}

    def environment(self, kind: TemplateKind) -> jinja2.Environment:
        env = self._environments.get(kind)
        if env is None:
            env = jinja2.Environment(
                loader=self._loader,
                autoescape=kind is TemplateKind.XML,
                finalize=_finalizer(_ESCAPERS[kind]),
                undefined=jinja2.Undefined,
                keep_trailing_newline=True,
                trim_blocks=True,
                lstrip_blocks=True,
            )
            env.filters["verbatim"] = _verbatim
            self._environments[kind] = env
        return env

    def render(
        self,
        template_id: str,
        context: Mapping[str, Any],
        override: Path | None = None,
    ) -> str:
        """Render a registered template.

        Args:
            template_id: Key of ``TEMPLATES`` (e.g. ``"deb/control"``)
            context: Values available to the template
            override: User template replacing the packaged one, same kind and contract

        Raises:
            TemplateError: unknown template, missing required field, or Jinja failure
        """
        spec = TEMPLATES.get(template_id)
        if spec is None:
            raise TemplateError(f"Unknown template: {template_id}")

        missing = [key for key in spec.required if context.get(key) is None or context.get(key) == ""]
        if missing:
            raise TemplateError(f"Template '{template_id}' is missing required fields: {', '.join(missing)}")

        env = self.environment(spec.kind)
        try:
            if override is not None:
                logger.debug("📝 Using template override", template=template_id, path=str(override))
                template = env.from_string(override.read_text(encoding="utf-8"))
            else:
                template = env.get_template(spec.filename)
            rendered = template.render(**context)
        except OSError as e:
            raise TemplateError(f"Cannot read template override {override}: {e}") from e
        except jinja2.TemplateError as e:
            raise TemplateError(f"Failed to render '{template_id}': {e}") from e

        logger.trace("📝 Rendered template", template=template_id, kind=spec.kind.value, size=len(rendered))
        return rendered


@functools.lru_cache(maxsize=1)
def get_renderer() -> TemplateRenderer:
    return TemplateRenderer()


# 🚢📦🔚
