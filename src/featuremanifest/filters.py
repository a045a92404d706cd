"""
Paging over time-ordered test run results.

A TestRunFilter describes one page of runs (a count limit, an offset, and a
[from, to] window). `next_page` derives the filter for the page after it from
how many runs the current page produced.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, FrozenSet, Mapping, Optional, Sequence, Tuple

from featuremanifest.constants import PAGE_WINDOW_GAP_MS
from featuremanifest.exceptions import ConfigurationError

_FRACTION = re.compile(r"\.(\d+)")


@dataclass(frozen=True)
class QueryOptions:
    """Extra options forwarded to the run query."""

    exclude_bad_ranges: bool = False


@dataclass(frozen=True)
class TestRunFilter:
    """Filter selecting one page of test runs."""

    __test__ = False  # not a pytest test class

    max_count: Optional[int] = None
    offset: Optional[int] = None
    from_: Optional[datetime] = None
    to: Optional[datetime] = None
    labels: FrozenSet[str] = field(default_factory=frozenset)
    products: Tuple[str, ...] = ()
    query_options: Optional[QueryOptions] = None

    def next_page(
        self,
        loaded_runs: Mapping[str, Sequence[Any]],
        now: Optional[datetime] = None,
    ) -> Optional["TestRunFilter"]:
        """
        Return the filter for the page following this one.

        Parameters:
            loaded_runs (Mapping[str, Sequence[Any]]): Runs loaded for this page, keyed by product.
            now (Optional[datetime]): Stands in for an open-ended `to`; current UTC time by default.

        Returns:
            Optional[TestRunFilter]: The next page, or None when this filter
            pages neither by count nor by time.
        """
        if self.from_ is not None:
            if self.max_count is not None and any(
                len(runs) >= self.max_count for runs in loaded_runs.values()
            ):
                return self._advance_offset()

            to = self.to if self.to is not None else (now or datetime.now(timezone.utc))
            span = to - self.from_
            return replace(
                self,
                from_=self.from_ - span,
                to=self.from_ - timedelta(milliseconds=PAGE_WINDOW_GAP_MS),
            )

        if self.max_count is not None:
            return self._advance_offset()
        return None

    def _advance_offset(self) -> "TestRunFilter":
        return replace(self, offset=(self.offset or 0) + self.max_count)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON shape used in page tokens; unset fields are omitted."""
        result: Dict[str, Any] = {}
        if self.max_count is not None:
            result["max-count"] = self.max_count
        if self.offset is not None:
            result["offset"] = self.offset
        if self.from_ is not None:
            result["from"] = self.from_.isoformat()
        if self.to is not None:
            result["to"] = self.to.isoformat()
        if self.labels:
            result["labels"] = sorted(self.labels)
        if self.products:
            result["products"] = list(self.products)
        if self.query_options is not None:
            result["exclude-bad-ranges"] = self.query_options.exclude_bad_ranges
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TestRunFilter":
        """
        Build a filter from `to_dict` output.

        Raises:
            ConfigurationError: If a field has the wrong type.
        """
        try:
            query_options = None
            if "exclude-bad-ranges" in data:
                query_options = QueryOptions(
                    exclude_bad_ranges=_strict_bool(data["exclude-bad-ranges"])
                )
            return cls(
                max_count=_optional_int(data.get("max-count")),
                offset=_optional_int(data.get("offset")),
                from_=_optional_datetime(data.get("from")),
                to=_optional_datetime(data.get("to")),
                labels=frozenset(data.get("labels") or ()),
                products=tuple(data.get("products") or ()),
                query_options=query_options,
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError("Invalid test run filter", details=str(e)) from e


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected an integer, got {value!r}")
    return value


def _strict_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"expected true or false, got {value!r}")
    return value


def _optional_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"expected an ISO 8601 timestamp, got {value!r}")
    # fromisoformat before Python 3.11 takes neither "Z" nor fractions other
    # than 3 or 6 digits
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    value = _FRACTION.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1
    )
    return datetime.fromisoformat(value)
