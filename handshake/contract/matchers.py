"""
Matcher tree and matching engine.

An expectation is a JSON-like tree whose nodes are either plain values
(matched literally) or one of the matcher nodes below:

- Literal(value): deep equality, no extra keys allowed
- Like(example): same JSON kind as the example, recursing structurally
- Term(pattern, generate): a string fully matching the regex
- EachLike(example, minimum): an array whose every element is like the example

Matching never raises. Every divergence becomes a Mismatch carrying the
JSON path, the expected value and the actual value, so callers can report
all problems of an interaction at once.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from handshake.errors import ConfigurationError, FailureKind

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")
_HEADER_SEPARATORS = re.compile(r"\s*([,;])\s*")


# ---------------------------------------------------------------------------
# Matcher nodes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Like:
    """Accept any value of the same JSON kind as ``example``."""

    example: Any


@dataclass(frozen=True)
class Term:
    """Accept any string that fully matches ``pattern``.

    ``generate`` is only used to build the mock provider's canned response
    and must itself satisfy the pattern.
    """

    pattern: str
    generate: str

    def __post_init__(self) -> None:
        try:
            compiled = re.compile(self.pattern)
        except re.error as exc:
            raise ConfigurationError(f"Invalid regex {self.pattern!r}: {exc}") from exc
        if not isinstance(self.generate, str) or compiled.fullmatch(self.generate) is None:
            raise ConfigurationError(
                f"Generated value {self.generate!r} does not match its own pattern {self.pattern!r}"
            )


@dataclass(frozen=True)
class EachLike:
    example: Any
    minimum: int = 1

    def __post_init__(self) -> None:
        if self.minimum < 1:
            raise ConfigurationError("EachLike minimum must be at least 1")


# Aliases matching the names consumers know from other contract tools.
SomethingLike = Like
Equals = Literal

MATCHER_NODES = (Literal, Like, Term, EachLike)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Mismatch:
    path: str
    expected: Any
    actual: Any
    message: str
    kind: FailureKind = FailureKind.MATCH

    def describe(self) -> str:
        return f"{self.path}: {self.message} (expected {self.expected!r}, got {self.actual!r})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "path": self.path,
            "expected": self.expected,
            "actual": self.actual,
            "message": self.message,
        }


@dataclass
class MatchResult:
    mismatches: List[Mismatch] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.mismatches

    def __bool__(self) -> bool:
        return self.ok

    def extend(self, other: "MatchResult") -> "MatchResult":
        self.mismatches.extend(other.mismatches)
        return self


def json_kind(value: Any) -> str:
    """Return the JSON type category of a Python value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def match(expected: Any, actual: Any, path: str = "$") -> MatchResult:
    """Match ``actual`` against the expectation tree ``expected``."""
    result = MatchResult()
    _match(expected, actual, path, result.mismatches)
    return result


def _match(expected: Any, actual: Any, path: str, out: List[Mismatch]) -> None:
    match expected:
        case Literal(value=value):
            if not _json_equal(value, actual):
                out.append(Mismatch(path, value, actual, "value is not equal"))
        case Like(example=example):
            _match_type(example, actual, path, out)
        case Term(pattern=pattern):
            if not isinstance(actual, str):
                out.append(Mismatch(path, pattern, actual, f"expected a string matching /{pattern}/"))
            elif re.fullmatch(pattern, actual) is None:
                out.append(Mismatch(path, pattern, actual, f"string does not match /{pattern}/"))
        case EachLike(example=example, minimum=minimum):
            _match_each_like(example, minimum, actual, path, out)
        case Mapping():
            if not isinstance(actual, Mapping):
                out.append(Mismatch(path, _plain(expected), actual, f"expected an object, got {json_kind(actual)}"))
                return
            for key, sub_expected in expected.items():
                sub_path = child_path(path, key)
                if key not in actual:
                    out.append(Mismatch(sub_path, _plain(sub_expected), None, "key is missing"))
                    continue
                _match(sub_expected, actual[key], sub_path, out)
        case list() | tuple():
            if not isinstance(actual, (list, tuple)):
                out.append(Mismatch(path, _plain(expected), actual, f"expected an array, got {json_kind(actual)}"))
                return
            if len(expected) != len(actual):
                out.append(
                    Mismatch(path, len(expected), len(actual), "array length differs")
                )
            for index, (sub_expected, sub_actual) in enumerate(zip(expected, actual)):
                _match(sub_expected, sub_actual, f"{path}[{index}]", out)
        case _:
            if not _json_equal(expected, actual):
                out.append(Mismatch(path, expected, actual, "value is not equal"))


def _match_type(example: Any, actual: Any, path: str, out: List[Mismatch]) -> None:
    if isinstance(example, MATCHER_NODES):
        _match(example, actual, path, out)
        return
    if json_kind(example) != json_kind(actual):
        out.append(
            Mismatch(
                path,
                json_kind(example),
                actual,
                f"type mismatch: expected {json_kind(example)}, got {json_kind(actual)}",
            )
        )
        return
    if isinstance(example, Mapping):
        for key, sub_example in example.items():
            sub_path = child_path(path, key)
            if key not in actual:
                out.append(Mismatch(sub_path, _plain(sub_example), None, "key is missing"))
                continue
            _match_type(sub_example, actual[key], sub_path, out)
    elif isinstance(example, (list, tuple)) and example:
        for index, item in enumerate(actual):
            _match_type(example[0], item, f"{path}[{index}]", out)


def _match_each_like(example: Any, minimum: int, actual: Any, path: str, out: List[Mismatch]) -> None:
    if not isinstance(actual, (list, tuple)):
        out.append(Mismatch(path, "array", actual, f"expected an array, got {json_kind(actual)}"))
        return
    if len(actual) < minimum:
        out.append(Mismatch(path, minimum, len(actual), f"array has fewer than {minimum} element(s)"))
    for index, item in enumerate(actual):
        _match_type(example, item, f"{path}[{index}]", out)


def _json_equal(left: Any, right: Any) -> bool:
    if json_kind(left) != json_kind(right):
        return False
    if isinstance(left, Mapping):
        return left.keys() == right.keys() and all(_json_equal(left[k], right[k]) for k in left)
    if isinstance(left, (list, tuple)):
        return len(left) == len(right) and all(_json_equal(a, b) for a, b in zip(left, right))
    return left == right


def child_path(path: str, key: Any) -> str:
    key = str(key)
    if _IDENTIFIER.match(key):
        return f"{path}.{key}"
    escaped = key.replace("'", "\\'")
    return f"{path}['{escaped}']"


# ---------------------------------------------------------------------------
# Headers and query strings
# ---------------------------------------------------------------------------

def normalize_header_value(value: str) -> str:
    return _HEADER_SEPARATORS.sub(r"\1 ", str(value).strip()).strip()


def match_headers(expected: Optional[Mapping[str, Any]], actual: Mapping[str, str], path: str = "$.headers") -> MatchResult:
    """Subset match with case-insensitive header names."""
    result = MatchResult()
    if not expected:
        return result
    lowered = {str(k).lower(): v for k, v in actual.items()}
    for name, expected_value in expected.items():
        sub_path = child_path(path, name)
        if name.lower() not in lowered:
            result.mismatches.append(Mismatch(sub_path, _plain(expected_value), None, "header is missing"))
            continue
        actual_value = lowered[name.lower()]
        if isinstance(expected_value, MATCHER_NODES):
            _match(expected_value, actual_value, sub_path, result.mismatches)
        elif normalize_header_value(expected_value) != normalize_header_value(actual_value):
            result.mismatches.append(Mismatch(sub_path, expected_value, actual_value, "header value differs"))
    return result


def match_query(expected: Optional[Mapping[str, Any]], actual: Mapping[str, Any], path: str = "$.query") -> MatchResult:
    """Match query parameters.

    Values go through the regular matcher so Term and Like may be used,
    but the set of parameter names must be exactly the expected one.
    A single-element list on the actual side is compared as a plain string.
    """
    expected = expected or {}
    flattened = {
        name: value[0] if isinstance(value, (list, tuple)) and len(value) == 1 else value
        for name, value in actual.items()
    }
    result = match(dict(expected), flattened, path)
    for name in flattened:
        if name not in expected:
            result.mismatches.append(
                Mismatch(child_path(path, name), None, flattened[name], "unexpected query parameter")
            )
    return result


# ---------------------------------------------------------------------------
# Generation and Pact v2 matching rules
# ---------------------------------------------------------------------------

def generate(tree: Any) -> Any:
    """Reify a matcher tree into the example value the mock provider replies with."""
    match tree:
        case Literal(value=value):
            return generate(value)
        case Like(example=example):
            return generate(example)
        case Term(generate=value):
            return value
        case EachLike(example=example, minimum=minimum):
            return [generate(example) for _ in range(minimum)]
        case Mapping():
            return {key: generate(value) for key, value in tree.items()}
        case list() | tuple():
            return [generate(value) for value in tree]
        case _:
            return tree


def _plain(tree: Any) -> Any:
    return generate(tree)


def to_matching_rules(tree: Any, path: str) -> Dict[str, Dict[str, Any]]:
    """Flatten the matcher nodes of ``tree`` into JSON-path keyed rules."""
    rules: Dict[str, Dict[str, Any]] = {}
    _collect_rules(tree, path, rules)
    return rules


def _collect_rules(tree: Any, path: str, rules: Dict[str, Dict[str, Any]]) -> None:
    match tree:
        case Like(example=example):
            rules[path] = {"match": "type"}
            _collect_rules(example, path, rules)
        case Term(pattern=pattern):
            rules[path] = {"match": "regex", "regex": pattern}
        case EachLike(example=example, minimum=minimum):
            rules[path] = {"min": minimum, "match": "type"}
            _collect_rules(example, f"{path}[*]", rules)
        case Literal():
            return
        case Mapping():
            for key, value in tree.items():
                _collect_rules(value, child_path(path, key), rules)
        case list() | tuple():
            for index, value in enumerate(tree):
                _collect_rules(value, f"{path}[{index}]", rules)


def from_matching_rules(value: Any, rules: Optional[Mapping[str, Mapping[str, Any]]], path: str) -> Any:
    """Rebuild a matcher tree from a generated value and its rules."""
    if not rules:
        return value
    return _rebuild(value, rules, path)


def _rebuild(value: Any, rules: Mapping[str, Mapping[str, Any]], path: str) -> Any:
    rule = rules.get(path)
    if rule is not None:
        kind = rule.get("match", "regex" if "regex" in rule else "type")
        if kind == "regex" and isinstance(value, str):
            return Term(rule["regex"], value)
        if kind == "type" and "min" in rule and isinstance(value, list) and value:
            return EachLike(_rebuild_children(value[0], rules, f"{path}[*]"), int(rule["min"]))
        if kind == "type":
            return Like(_rebuild_children(value, rules, path))
    return _rebuild_children(value, rules, path)


def _rebuild_children(value: Any, rules: Mapping[str, Mapping[str, Any]], path: str) -> Any:
    if isinstance(value, Mapping):
        return {key: _rebuild(sub, rules, child_path(path, key)) for key, sub in value.items()}
    if isinstance(value, list):
        return [_rebuild(sub, rules, f"{path}[{index}]") for index, sub in enumerate(value)]
    return value
