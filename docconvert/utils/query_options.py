"""
Query-string option handling for conversion routes.

Options reach a converter only through ConversionOptions: built once per
request from the route's defaults, its allow-list and the parsed query,
and read-only afterwards. Unknown query parameters are dropped, and
recognised values are turned into the literal they spell (bool, int, float)
so an external tool never receives "2" where it expects 2.
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .logging_config import get_logger

logger = get_logger()

_INT_RE = re.compile(r'^[+-]?\d+$')
_FLOAT_RE = re.compile(r'^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$')


def parse_literal(value: Any) -> Any:
    """
    Convert a query-string value to the literal it represents.

    Examples:
        >>> parse_literal("2")
        2
        >>> parse_literal("1.5")
        1.5
        >>> parse_literal("1.0")
        1
        >>> parse_literal("TRUE")
        True
        >>> parse_literal("UTF-8")
        'UTF-8'
    """
    if not isinstance(value, str):
        return value

    text = value.strip()
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _INT_RE.match(text):
        return int(text)
    if _FLOAT_RE.match(text):
        number = float(text)
        # Integral values go out as ints; Poppler rejects "-f 1.0"
        return int(number) if number.is_integer() else number
    return value


@dataclass(frozen=True)
class ConversionOptions:
    """Immutable option set for a single conversion."""

    values: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self):
        if not isinstance(self.values, MappingProxyType):
            object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def __contains__(self, key: str) -> bool:
        return key in self.values

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.values)

    def subset(self, keys: Iterable[str]) -> "ConversionOptions":
        """Options restricted to the given keys."""
        keys = set(keys)
        return ConversionOptions({k: v for k, v in self.values.items() if k in keys})

    def to_cli_args(self, flags: Mapping[str, str], valued: Mapping[str, str]) -> List[str]:
        """
        Render options as command line arguments.

        Args:
            flags: Option name -> switch emitted when the option is True
            valued: Option name -> switch followed by the option's value

        Returns:
            Argument list in option name order, for reproducible commands
        """
        args: List[str] = []
        for name in sorted(self.values):
            value = self.values[name]
            if name in flags:
                if value is True:
                    args.append(flags[name])
            elif name in valued:
                if value is None or isinstance(value, bool):
                    continue
                args.extend([valued[name], str(value)])
        return args


def build_options(
    query: Optional[Mapping[str, Any]],
    allowed: Iterable[str],
    defaults: Optional[Mapping[str, Any]] = None,
    keep_strings: Iterable[str] = (),
) -> ConversionOptions:
    """
    Merge route defaults with the allow-listed, literal-parsed query.

    Args:
        query: Raw query parameters (values as received)
        allowed: Parameter names this route accepts
        defaults: Values used when the query does not override them
        keep_strings: Names whose values are passed through verbatim
            (passwords, encodings, colours), never parsed as literals

    Returns:
        ConversionOptions holding defaults updated by the accepted query values
    """
    allowed = frozenset(allowed)
    keep_strings = frozenset(keep_strings)
    merged: Dict[str, Any] = dict(defaults or {})
    dropped: List[str] = []

    for key, raw in (query or {}).items():
        if key not in allowed:
            dropped.append(key)
            continue
        merged[key] = raw if key in keep_strings else parse_literal(raw)

    if dropped:
        logger.debug(f"Ignoring query parameters not accepted here: {sorted(dropped)}")

    return ConversionOptions(merged)
