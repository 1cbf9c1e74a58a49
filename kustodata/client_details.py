"""Application, user and client-version values sent to the service for tracing."""

from __future__ import annotations

import getpass
import os
import platform
import re
import sys
from dataclasses import dataclass
from functools import lru_cache
from typing import NamedTuple

KUSTO_VERSION = "1.0.0-preview-5"
"""Version of this client, as reported to the service."""

NONE = "[none]"
"""Placeholder used when a tracing value is unknown or withheld."""

CLIENT_NAME_KEY = "Kusto.Python.Client"
RUNTIME_KEY = "Runtime.Python"

_ESCAPE_PATTERN = re.compile(r"[\r\n\t\f {}|]+")


@dataclass(frozen=True)
class StringPair:
    """A key and value rendered as one field of a tracing header."""

    key: str
    value: str


class _TracingDefaults(NamedTuple):
    application: str
    user: str
    client_version: str


def _is_empty(text: str | None) -> bool:
    return not text or not text.strip()


def get_os_user() -> str:
    """Name of the user running the process, or ``[none]`` when unknown.

    Falls back to the ``USERNAME`` variable, prefixed by ``USERDOMAIN`` when set.
    """
    try:
        name = getpass.getuser()
    except (OSError, KeyError, ImportError):
        name = ""
    if not name:
        name = os.environ.get("USERNAME", "")
        domain = os.environ.get("USERDOMAIN", "")
        if not _is_empty(domain) and not _is_empty(name):
            name = domain + "\\" + name
    if _is_empty(name):
        name = NONE
    return name


def escape(value: str) -> str:
    """Wrap a value in braces, replacing runs of whitespace, braces and pipes with ``_``."""
    return "{" + _ESCAPE_PATTERN.sub("_", value) + "}"


def build_header_format(*args: StringPair) -> str:
    """Join pairs as ``key:{value}`` separated by ``|``."""
    return "|".join(f"{pair.key}:{escape(pair.value)}" for pair in args)


def _application_name() -> str:
    program = sys.argv[0] if sys.argv else ""
    program = program.rstrip("/\\")
    if not program:
        return "."
    return os.path.basename(program) or "."


@lru_cache(maxsize=None)
def default_tracing_values() -> _TracingDefaults:
    """Process-wide defaults, computed once."""
    return _TracingDefaults(
        application=_application_name(),
        user=get_os_user(),
        client_version=build_header_format(
            StringPair(CLIENT_NAME_KEY, KUSTO_VERSION),
            StringPair(RUNTIME_KEY, platform.python_version()),
        ),
    )


@dataclass
class ClientDetails:
    """Tracing identity of a client; empty fields fall back to process defaults."""

    application: str = ""
    user: str = ""

    def application_for_tracing(self) -> str:
        return self.application or default_tracing_values().application

    def user_name_for_tracing(self) -> str:
        return self.user or default_tracing_values().user

    def client_version_for_tracing(self) -> str:
        return default_tracing_values().client_version


def set_connector_details(
    name: str,
    version: str,
    app_name: str,
    app_version: str,
    send_user: bool,
    override_user: str,
    *args: StringPair,
) -> tuple[str, str]:
    """Build the application and user tracing values for a connector.

    Returns ``(application, user)``.  The user is ``[none]`` unless
    ``send_user`` is set, in which case ``override_user`` or the OS user is used.
    """
    if not app_name:
        app_name = default_tracing_values().application
    if not app_version:
        app_version = NONE
    fields = [
        StringPair("Kusto." + name, version),
        StringPair("App.{" + app_name + "}", app_version),
        *args,
    ]
    app = build_header_format(*fields)

    user = NONE
    if send_user:
        user = override_user or default_tracing_values().user
    return app, user