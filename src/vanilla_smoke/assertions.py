"""
Assertions shared by the smoke cases.

These raise AssertionError themselves instead of using ``assert`` so a
forum regression still fails its case when Python runs with ``-O``.
"""

from typing import Any, List, Mapping

from vanilla_smoke.models import ApiResponse


def check(condition: Any, message: str = "") -> None:
    """Raise AssertionError with ``message`` unless ``condition`` holds."""
    if not condition:
        raise AssertionError(message)


def assert_response_success(response: ApiResponse) -> None:
    check(
        response.is_success,
        f"Expected a 2xx response from {response.url or 'the forum'}, got {response.status_code}: {response.body!r}",
    )


def _loosely_equal(expected: Any, actual: Any) -> bool:
    if expected == actual:
        return True
    # The forum's JSON mixes numeric and string ids.
    scalars = (str, int, float)
    if isinstance(expected, scalars) and isinstance(actual, scalars) and not isinstance(expected, bool):
        return str(expected) == str(actual)
    return False


def _subset_mismatches(expected: Mapping[str, Any], actual: Mapping[str, Any], prefix: str = "") -> List[str]:
    mismatches = []
    for key, value in expected.items():
        label = f"{prefix}{key}"
        if key not in actual:
            mismatches.append(f"{label}: missing")
            continue
        if isinstance(value, Mapping) and isinstance(actual[key], Mapping):
            mismatches.extend(_subset_mismatches(value, actual[key], f"{label}."))
        elif not _loosely_equal(value, actual[key]):
            mismatches.append(f"{label}: expected {value!r}, got {actual[key]!r}")
    return mismatches


def assert_subset(expected: Mapping[str, Any], actual: Mapping[str, Any]) -> None:
    """
    Assert that ``actual`` contains every key of ``expected`` with an equal value.

    Values compare loosely: ``1`` matches ``"1"``. Nested mappings are
    compared the same way.
    """
    check(isinstance(actual, Mapping), f"Expected a mapping, got {type(actual).__name__}")
    mismatches = _subset_mismatches(expected, actual)
    check(not mismatches, "Response is not a superset of the submitted fields:\n  " + "\n  ".join(mismatches))
