"""
### Value Parsing

Query strings are untyped: everything arrives as a string.
Instead of requiring a schema for every resource, MongoPipe infers the type of a value
from the value itself and from the name of the field it is compared to.

The rules are tried in order, and the first rule that matches wins:

1. `$exist:true` / `$exist:false` becomes an existence check: `{ $exists: true }`
2. Fields with a date-like name (`date`, `time`, `createdAt`, `updatedAt` anywhere in the name, in any case)
   get a date: a 13-digit millisecond timestamp, a 10-digit second timestamp, or any date string
   that `dateutil` understands. If it's not a date, the string is used as is.
3. Fields that end with `Id`, and values that look like an ObjectId, get an `ObjectId`
   (falling back to the string if it's not a valid one).
4. `true` / `false` in any case become booleans
5. Numbers become `int` or `float`
6. Everything else stays a string

Example:

```
GET /api/article?authorId=5f1d7e2b9c1e4a3b2c1d0e9f&published=true&views__gte=100&createdAt__gte=1700000000000
```

This way, one query string works across records of different shapes.
The price is that the typing is heuristic: `?title=true` will look for a boolean.
"""

import math
import re
from datetime import datetime, timedelta, timezone

from bson import ObjectId
from bson.errors import InvalidId
from dateutil import parser as date_parser

from .exc import ValueTooLongError


#: The longest string value that is accepted at all
MAX_STRING_LENGTH = 10000

#: Larger numbers lose precision as doubles; they're kept as strings
MAX_SAFE_INTEGER = 2 ** 53 - 1

#: Timestamps beyond 2100-01-01 are not considered to be timestamps
MAX_TIMESTAMP_MS = 4102444800000
MAX_TIMESTAMP_S = 4102444800

#: Lowercased field name fragments that mark a date field
DATE_FIELD_MARKERS = ('date', 'time', 'createdat', 'updatedat')

#: Prefix of an existence check value: "$exist:true"
EXIST_PREFIX = '$exist:'

TIMESTAMP_13_REGEX = re.compile(r'^\d{13}\Z', re.ASCII)
TIMESTAMP_10_REGEX = re.compile(r'^\d{10}\Z', re.ASCII)
NUMBER_REGEX = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\Z', re.ASCII)
INTEGER_REGEX = re.compile(r'^[+-]?\d+\Z', re.ASCII)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# dateutil fills missing date components from this date.
# It's fixed so that parsing never depends on the current date.
_DATE_DEFAULTS = datetime(1970, 1, 1)


class ValueParser:
    """ Infer a typed value from a raw query string value

        Stateless: all methods are class methods, and `parse()` never modifies its input.
    """

    @classmethod
    def parse(cls, field, value):
        """ Convert a raw string into a typed value

        :param field: Name of the field the value is compared to. Used for type inference.
        :param value: The raw value
        :raises ValueTooLongError: the value is longer than MAX_STRING_LENGTH
        """
        # Only strings are parsed; anything else has been parsed already
        if not isinstance(value, str):
            return value

        if len(value) > MAX_STRING_LENGTH:
            raise ValueTooLongError(len(value), MAX_STRING_LENGTH)

        for test, convert in cls._RULES:
            if test(field, value):
                return convert(field, value)

        # Fallback: string
        return value

    # region Rules

    @staticmethod
    def is_exist_operator(field, value):
        return value.startswith(EXIST_PREFIX)

    @staticmethod
    def parse_exist_value(field, value):
        return {'$exists': value[len(EXIST_PREFIX):].lower() == 'true'}

    @staticmethod
    def is_date_field(field, value):
        if not field or not isinstance(field, str):
            return False
        field_lower = field.lower()
        return any(marker in field_lower for marker in DATE_FIELD_MARKERS)

    @staticmethod
    def parse_date_value(field, value):
        """ Parse a date, or give the value back unchanged. Never raises. """
        if TIMESTAMP_13_REGEX.match(value):
            timestamp = int(value)
            if 0 <= timestamp <= MAX_TIMESTAMP_MS:
                return EPOCH + timedelta(milliseconds=timestamp)

        if TIMESTAMP_10_REGEX.match(value):
            timestamp = int(value)
            if 0 <= timestamp <= MAX_TIMESTAMP_S:
                return EPOCH + timedelta(seconds=timestamp)

        try:
            return date_parser.parse(value, default=_DATE_DEFAULTS)
        except (ValueError, OverflowError):  # ParserError is a ValueError
            return value

    @staticmethod
    def is_object_id(field, value):
        if not field or not value or not isinstance(field, str):
            return False
        return field.endswith('Id') or ObjectId.is_valid(value)

    @staticmethod
    def parse_object_id_value(field, value):
        try:
            return ObjectId(value)
        except (InvalidId, TypeError):
            return value

    @staticmethod
    def is_boolean_value(field, value):
        return value.lower() in ('true', 'false')

    @staticmethod
    def parse_boolean_value(field, value):
        return value.lower() == 'true'

    @classmethod
    def is_numeric_value(cls, field, value):
        return cls.parse_number(value) is not None

    @classmethod
    def parse_numeric_value(cls, field, value):
        return cls.parse_number(value)

    # endregion

    @staticmethod
    def parse_number(value):
        """ Parse a number, or get a `None`

            Accepts integers and decimals, with an optional exponent.
            Infinite numbers and numbers above MAX_SAFE_INTEGER are not numbers.

            :rtype: int | float | None
        """
        if not isinstance(value, str):
            return None
        value = value.strip()
        if not NUMBER_REGEX.match(value):
            return None

        number = int(value) if INTEGER_REGEX.match(value) else float(value)
        if isinstance(number, float) and not math.isfinite(number):
            return None
        if number > MAX_SAFE_INTEGER:
            return None
        return number


# The decision table: (test, convert), tried in order. First match wins.
ValueParser._RULES = (
    (ValueParser.is_exist_operator, ValueParser.parse_exist_value),
    (ValueParser.is_date_field, ValueParser.parse_date_value),
    (ValueParser.is_object_id, ValueParser.parse_object_id_value),
    (ValueParser.is_boolean_value, ValueParser.parse_boolean_value),
    (ValueParser.is_numeric_value, ValueParser.parse_numeric_value),
)


parse_value = ValueParser.parse
