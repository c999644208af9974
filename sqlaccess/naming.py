"""Name-mapping strategies between attribute names and column/table names."""

from typing import Dict, Type

# Initialisms kept upper-case by the gonic convention when mapping back.
COMMON_INITIALISMS = frozenset({
    "ACL", "API", "ASCII", "CPU", "CSS", "DNS", "EOF", "GUID", "HTML", "HTTP",
    "HTTPS", "ID", "IP", "JSON", "LHS", "QPS", "RAM", "RHS", "RPC", "SLA",
    "SMTP", "SSH", "TLS", "TTL", "UI", "UID", "UUID", "URI", "URL", "UTF8",
    "VM", "XML", "XSRF", "XSS",
})


class NameMapper:
    """Base strategy. Subclasses translate in both directions."""

    name = "same"

    def obj_to_table(self, name: str) -> str:
        raise NotImplementedError

    def table_to_obj(self, name: str) -> str:
        raise NotImplementedError

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class SameMapper(NameMapper):
    """Identity mapping."""

    name = "same"

    def obj_to_table(self, name: str) -> str:
        return name

    def table_to_obj(self, name: str) -> str:
        return name


class SnakeMapper(NameMapper):
    """``UserName`` <-> ``user_name``."""

    name = "snake"

    def obj_to_table(self, name: str) -> str:
        chars = []
        for i, ch in enumerate(name):
            if ch.isupper():
                if i > 0:
                    chars.append("_")
                chars.append(ch.lower())
            else:
                chars.append(ch)
        return "".join(chars)

    def table_to_obj(self, name: str) -> str:
        parts = name.split("_")
        return "".join(part[:1].upper() + part[1:] for part in parts)


class GonicMapper(NameMapper):
    """Snake mapping that keeps initialisms together.

    ``UserID`` maps to ``user_id`` rather than ``user_i_d``, and ``user_id``
    maps back to ``UserID``.
    """

    name = "gonic"

    def obj_to_table(self, name: str) -> str:
        chars = []
        length = len(name)
        for i, ch in enumerate(name):
            if ch.isupper() and i > 0:
                prev_lower = name[i - 1].islower() or name[i - 1].isdigit()
                next_lower = i + 1 < length and name[i + 1].islower()
                if prev_lower or (name[i - 1].isupper() and next_lower):
                    chars.append("_")
            chars.append(ch.lower())
        return "".join(chars)

    def table_to_obj(self, name: str) -> str:
        words = []
        for part in name.split("_"):
            if not part:
                continue
            upper = part.upper()
            if upper in COMMON_INITIALISMS:
                words.append(upper)
            else:
                words.append(part[0].upper() + part[1:])
        return "".join(words)


MAPPERS: Dict[str, Type[NameMapper]] = {
    "snake": SnakeMapper,
    "gonic": GonicMapper,
}


def get_mapper(selector: str) -> NameMapper:
    """Select a mapper by exact name. Unknown names get the identity mapper."""
    return MAPPERS.get(selector, SameMapper)()
