"""
wikidate.py - Wikibase time value utilities.

Provides the WikidataTime class for parsing and formatting Wikibase time strings
(e.g. '+1871-01-18T00:00:00Z') together with their precision. Supports:
    - Extraction of year, month and day (month/day may be 00 in the source string)
    - Construction from a plain year or a datetime.date
    - Ordering by (year, month, day)

Module: wd_infernal.wikidate
"""
__all__ = ['WikidataTime', 'PRECISION_YEAR', 'PRECISION_MONTH', 'PRECISION_DAY']

import logging
import re
from datetime import date as _date
from functools import total_ordering
from typing import Optional, Union

logger = logging.getLogger(__name__)

PRECISION_YEAR = 9
PRECISION_MONTH = 10
PRECISION_DAY = 11

GREGORIAN_CALENDAR = "http://www.wikidata.org/entity/Q1985727"

_TIME_RE = re.compile(r'^([+-]?)0*(\d+)-(\d\d)-(\d\d)(?:T(\d\d):(\d\d):(\d\d)Z)?$')


@total_ordering
class WikidataTime:
    """
    Parsed Wikibase time value.

    Attributes:
        year (int): Year, negative for BCE.
        month (int): Month 1-12, or 0 if unknown.
        day (int): Day 1-31, or 0 if unknown.
        precision (int): Wikibase precision (9 = year, 10 = month, 11 = day).
    """
    __slots__ = ['year', 'month', 'day', 'precision']

    def __init__(self, year: int, month: int = 0, day: int = 0, precision: int = PRECISION_DAY):
        self.year = int(year)
        self.month = int(month)
        self.day = int(day)
        self.precision = int(precision)

    @classmethod
    def parse(cls, time: str, precision: int = PRECISION_DAY) -> Optional["WikidataTime"]:
        """
        Parse a Wikibase time string.

        Args:
            time (str): Time string such as '+1871-01-18T00:00:00Z'.
            precision (int): Wikibase precision of the value.

        Returns:
            WikidataTime or None: Parsed value, or None if the string is not a time.
        """
        if not isinstance(time, str):
            return None
        m = _TIME_RE.match(time.strip())
        if not m:
            logger.debug(f"WikidataTime: unable to parse time string '{time}'")
            return None
        sign, year, month, day = m.group(1), int(m.group(2)), int(m.group(3)), int(m.group(4))
        if sign == '-':
            year = -year
        return cls(year, month, day, precision)

    @classmethod
    def from_year(cls, year: int) -> "WikidataTime":
        """Year-precision value for a plain year."""
        return cls(year, 0, 0, PRECISION_YEAR)

    @classmethod
    def from_date(cls, value: _date) -> "WikidataTime":
        """Day-precision value for a datetime.date."""
        return cls(value.year, value.month, value.day, PRECISION_DAY)

    @classmethod
    def coerce(cls, value: Union["WikidataTime", _date, int, str, None]) -> Optional["WikidataTime"]:
        """Convert a WikidataTime, date, year or time string to WikidataTime."""
        if value is None or isinstance(value, WikidataTime):
            return value
        if isinstance(value, _date):
            return cls.from_date(value)
        if isinstance(value, int) and not isinstance(value, bool):
            return cls.from_year(value)
        if isinstance(value, str):
            return cls.parse(value)
        raise TypeError(f"Unsupported time type: {type(value)}")

    @property
    def time(self) -> str:
        """Wikibase time string; month/day below the precision are zeroed."""
        month = self.month if self.precision >= PRECISION_MONTH else 0
        day = self.day if self.precision >= PRECISION_DAY else 0
        sign = '-' if self.year < 0 else '+'
        return f"{sign}{abs(self.year):04d}-{month:02d}-{day:02d}T00:00:00Z"

    def to_date(self) -> Optional[_date]:
        """Return a datetime.date when the value has day precision and a valid CE date."""
        if self.precision < PRECISION_DAY or self.year < 1 or not self.month or not self.day:
            return None
        try:
            return _date(self.year, self.month, self.day)
        except ValueError:
            return None

    def truncate(self, precision: int) -> "WikidataTime":
        """Copy of this value reduced to the given (coarser) precision."""
        precision = min(self.precision, precision)
        return WikidataTime(
            self.year,
            self.month if precision >= PRECISION_MONTH else 0,
            self.day if precision >= PRECISION_DAY else 0,
            precision,
        )

    def _key(self):
        return (self.year, self.month, self.day)

    def __eq__(self, other):
        if not isinstance(other, WikidataTime):
            return NotImplemented
        return self._key() == other._key() and self.precision == other.precision

    def __lt__(self, other):
        if not isinstance(other, WikidataTime):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self):
        return hash((self._key(), self.precision))

    def __repr__(self):
        return f"WikidataTime({self.time!r}, precision={self.precision})"
