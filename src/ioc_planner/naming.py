"""Identifier synthesis for generated members and constructor parameters.

All functions are pure string transforms over declared type names such as
``App.Data.IRepository<User>`` or ``IEnumerable<IHandler>``.
"""

import re

from ioc_planner.models import NamingConvention

COLLECTION_TYPE_NAMES = frozenset(
    {
        "Array",
        "ICollection",
        "IEnumerable",
        "IList",
        "IReadOnlyCollection",
        "IReadOnlyList",
        "List",
    }
)

CONFIGURATION_SUFFIXES = ("Configuration", "Settings", "Options", "Config", "Object")

# Identifiers the emission target reserves; synthesized names get a suffix.
RESERVED_IDENTIFIERS = frozenset(
    """
    abstract as base bool break byte case catch char checked class const
    continue decimal default delegate do double else enum event explicit
    extern false finally fixed float for foreach goto if implicit in int
    interface internal is lock long namespace new null object operator out
    override params private protected public readonly ref return sbyte sealed
    short sizeof stackalloc static string struct switch this throw true try
    typeof uint ulong unchecked unsafe ushort using virtual void volatile while
    """.split()
)

_UPPER_AFTER_FIRST = re.compile(r"(?<!^)([A-Z])")


def split_generic(type_name: str) -> tuple[str, list[str]]:
    """Split ``Name<A, B<C>>`` into ``("Name", ["A", "B<C>"])``.

    Only top-level commas separate arguments. Names without generic
    arguments return an empty argument list.
    """
    name = type_name.strip()
    start = name.find("<")
    if start == -1 or not name.endswith(">"):
        return name, []

    arguments: list[str] = []
    depth = 0
    current: list[str] = []
    for char in name[start + 1 : -1]:
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
        elif char == "," and depth == 0:
            arguments.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    arguments.append("".join(current).strip())
    return name[:start], [arg for arg in arguments if arg]


def simple_name(type_name: str) -> str:
    """Return the type name without namespace or generic arguments."""
    base, _ = split_generic(type_name)
    return base.rsplit(".", 1)[-1]


def collection_element_type(type_name: str) -> str | None:
    """Return the element type of a collection-shaped type, else None."""
    name = type_name.strip()
    if name.endswith("[]"):
        return name[:-2].strip() or None
    base, arguments = split_generic(name)
    if base.rsplit(".", 1)[-1] in COLLECTION_TYPE_NAMES and arguments:
        return arguments[0]
    return None


def strip_interface_marker(name: str, marker: str = "I") -> str:
    """Drop a leading interface marker (``ICache`` -> ``Cache``).

    The marker is only stripped when followed by an upper-case letter, so
    ``Item`` and ``I`` stay unchanged.
    """
    if marker and len(name) > 1 and name.startswith(marker) and name[1].isupper():
        return name[len(marker) :]
    return name


def apply_convention(name: str, convention: NamingConvention) -> str:
    """Apply a naming convention to a PascalCase name."""
    if not name:
        return name
    match convention:
        case NamingConvention.CAMEL_CASE:
            return name[0].lower() + name[1:]
        case NamingConvention.PASCAL_CASE:
            return name[0].upper() + name[1:]
        case NamingConvention.SNAKE_CASE:
            return _UPPER_AFTER_FIRST.sub(r"_\1", name).lower()


def apply_prefix(name: str, prefix: str, convention: NamingConvention) -> str:
    """Combine a prefix with a base name under a naming convention.

    An empty prefix adds nothing, a prefix ending in ``_`` is prepended as
    is, any other prefix becomes part of the name itself.
    """
    if not prefix:
        return apply_convention(name, convention)
    if prefix.endswith("_"):
        return prefix + apply_convention(name, convention)
    return "_" + apply_convention(prefix + name, convention)


def pluralize(name: str) -> str:
    """Pluralise an English noun used as an identifier."""
    if not name:
        return name
    lower = name.lower()
    if lower.endswith("s") and not lower.endswith(("ss", "us", "is")):
        return name
    if lower.endswith("y") and len(lower) > 1 and lower[-2] not in "aeiou":
        return name[:-1] + "ies"
    if lower.endswith(("s", "sh", "ch", "x", "z")):
        return name + "es"
    if lower.endswith("fe"):
        return name[:-2] + "ves"
    if lower.endswith("f"):
        return name[:-1] + "ves"
    return name + "s"


def escape_reserved(name: str) -> str:
    """Suffix reserved identifiers with ``Value``."""
    if name in RESERVED_IDENTIFIERS:
        return name + "Value"
    return name


def member_name_for(
    type_name: str,
    *,
    convention: NamingConvention = NamingConvention.CAMEL_CASE,
    strip_marker: bool = True,
    prefix: str = "_",
    marker: str = "I",
) -> str:
    """Synthesize the member name for a dependency on ``type_name``.

    Collection-shaped targets use the pluralised element name, so
    ``IEnumerable<IHandler>`` becomes ``_handlers``.
    """
    element = collection_element_type(type_name)
    base = simple_name(element if element is not None else type_name)
    if strip_marker:
        base = strip_interface_marker(base, marker)

    name = apply_prefix(base, prefix, convention)
    if element is not None:
        head = len(name) - len(name.lstrip("_"))
        name = name[:head] + pluralize(name[head:])
    return escape_reserved(name)


def parameter_name_for(member_name: str) -> str:
    """Derive the constructor parameter name for a member.

    Leading underscores are removed, snake_case parts are joined in
    camelCase and the first letter is lower-cased.
    """
    stripped = member_name.lstrip("_")
    if not stripped:
        return "value"
    if "_" in stripped:
        parts = [part for part in stripped.split("_") if part]
        stripped = parts[0] + "".join(part[0].upper() + part[1:] for part in parts[1:])
    return escape_reserved(stripped[0].lower() + stripped[1:])


def infer_section_name(type_name: str) -> str:
    """Infer a configuration section name from a settings type name.

    ``EmailSettings`` becomes ``Email``; names made only of a suffix are
    returned unchanged.
    """
    name = simple_name(type_name)
    for suffix in CONFIGURATION_SUFFIXES:
        if name.endswith(suffix) and len(name) > len(suffix):
            return name[: -len(suffix)]
    return name
