"""Plugin identifier parsing.

Plugin identifiers follow package naming: an optional ``@scope/`` prefix, a
name, and an optional ``@version`` suffix, e.g. ``@acme/php@^1.2``.
"""

import re
from dataclasses import dataclass

_PACKAGE_PATTERN = re.compile(
    r"^(?P<name>(?:@(?P<scope>[^/@\s]+)/)?[^/@\s]+)(?:@(?P<version>\S*))?$"
)


@dataclass(frozen=True)
class PackageName:
    """A parsed plugin identifier.

    Attributes:
        raw: The identifier as given.
        name: Bare name including any scope, e.g. ``@acme/php``.
        scope: Scope without the ``@``, if any.
        version: Version or range, if any.
    """

    raw: str
    name: str
    scope: str | None = None
    version: str | None = None


def parse_package_name(identifier: str) -> PackageName:
    """Split a plugin identifier into name, scope and version.

    Identifiers that do not look like package names (for example a
    filesystem path) are returned unchanged as the name.
    """
    identifier = identifier.strip()
    match = _PACKAGE_PATTERN.match(identifier)
    if match is None:
        return PackageName(raw=identifier, name=identifier)
    return PackageName(
        raw=identifier,
        name=match.group("name"),
        scope=match.group("scope"),
        version=match.group("version") or None,
    )
