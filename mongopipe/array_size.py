"""
### Array Size Filters

Filter documents by the length of an array field:

```
GET /api/post?tags__size_gt=3
GET /api/order?items__size_between=2,5
```

Supported operators: `size_gt`, `size_gte`, `size_lt`, `size_lte`, `size_eq`, `size_ne`, `size_between`.

A length cannot be compared in a plain `$match`, so the length is computed first, into a derived field
named `<field>Count`, and then matched:

```javascript
[
    { $addFields: { tagsCount: { $size: { $ifNull: ['$tags', []] } } } },
    { $match: { tagsCount: { $gt: 3 } } },
]
```

A missing array counts as an empty one.

`size_between` takes "min,max". When `max` is omitted ("2", or "2,"), it is `min + 1`.
"""

import logging
import re

from .exc import MalformedOperatorError
from .operators import ARRAY_SIZE_OPERATORS
from .values import ValueParser

logger = logging.getLogger(__name__)

#: `<field>__<operator>` query keys
OPERATOR_KEY_REGEX = re.compile(r'^(.+)__(.+)$')

#: Suffix of the derived field that holds the length of an array
COUNT_FIELD_SUFFIX = 'Count'


class ArraySizeResult:
    """ The pipeline fragment that implements array size filters

        * `needs_pipeline`: whether there are any array size filters at all
        * `pipeline`: [ {$addFields}, {$match} ] stages, in this order
        * `match`: the conditions on the derived fields: { tagsCount: { $gt: 3 } }
    """

    __slots__ = ('needs_pipeline', 'pipeline', 'match')

    def __init__(self, needs_pipeline=False, pipeline=None, match=None):
        self.needs_pipeline = needs_pipeline
        self.pipeline = pipeline or []
        self.match = match or {}

    def __eq__(self, other):
        if not isinstance(other, ArraySizeResult):
            return NotImplemented
        return (self.needs_pipeline, self.pipeline, self.match) == \
               (other.needs_pipeline, other.pipeline, other.match)

    def __repr__(self):
        return '{}(needs_pipeline={!r}, pipeline={!r})'.format(
            self.__class__.__name__, self.needs_pipeline, self.pipeline)


class ArraySizeHelper:
    """ Compile `<field>__size_*` query keys into a two-stage pipeline fragment """

    _conditions = {
        # operator => lambda value
        'size_gt':  lambda v: {'$gt': v},
        'size_gte': lambda v: {'$gte': v},
        'size_lt':  lambda v: {'$lt': v},
        'size_lte': lambda v: {'$lte': v},
        'size_eq':  lambda v: {'$eq': v},
        'size_ne':  lambda v: {'$ne': v},
    }

    def __init__(self, is_allowed_field=None):
        """ Init the helper

        :param is_allowed_field: A `lambda field: bool` that tells whether a field can be filtered by.
            Keys for fields that are not allowed are dropped.
            When not given, every field is allowed.
        """
        self.is_allowed_field = is_allowed_field

    @staticmethod
    def is_array_size_operator(operator):
        return operator in ARRAY_SIZE_OPERATORS

    @staticmethod
    def count_field_name(field):
        """ Name of the derived field with the length of `field` """
        return field + COUNT_FIELD_SUFFIX

    def parse_query(self, query):
        """ Find array size filters in a query, compile a pipeline fragment

        :param query: The raw query: {key: value}
        :rtype: ArraySizeResult
        :raises MalformedOperatorError: invalid operand
        """
        # Collect (field, condition) pairs
        operations = []
        for key, value in query.items():
            m = OPERATOR_KEY_REGEX.match(key)
            if not m:
                continue
            field, operator = m.groups()
            if operator not in ARRAY_SIZE_OPERATORS:
                continue

            if self.is_allowed_field is not None and not self.is_allowed_field(field):
                logger.warning('Array size filter on a field that is not allowed: %s', key)
                continue

            operations.append((field, self.build_match_condition(operator, value)))

        if not operations:
            return ArraySizeResult(needs_pipeline=False)

        # Phase 1: compute lengths. One derived field per array.
        add_fields = {}
        for field, condition in operations:
            add_fields[self.count_field_name(field)] = {
                '$size': {'$ifNull': ['$' + field, []]}
            }

        # Phase 2: match against the derived fields.
        # Conditions on the same array are merged
        match = {}
        for field, condition in operations:
            match.setdefault(self.count_field_name(field), {}).update(condition)

        return ArraySizeResult(
            needs_pipeline=True,
            pipeline=[
                {'$addFields': add_fields},
                {'$match': match},
            ],
            match=match,
        )

    def build_match_condition(self, operator, value):
        """ Build a condition for a derived count field

        :param operator: 'size_gt', etc
        :param value: Raw value: a number, or "min,max" for `size_between`
        :rtype: dict
        :raises MalformedOperatorError: invalid operand
        """
        if operator == 'size_between':
            return self._build_between_condition(value)

        number = ValueParser.parse_number(value)
        if number is None:
            raise MalformedOperatorError(operator, '{} requires a numeric value'.format(operator))
        return self._conditions[operator](number)

    @staticmethod
    def _build_between_condition(value):
        parts = [v.strip() for v in value.split(',')]
        if len(parts) > 2:
            raise MalformedOperatorError('size_between', 'size_between requires format: "min,max"')

        # Missing `min` is 0, missing `max` is `min + 1`
        low = ValueParser.parse_number(parts[0] or '0')
        high = parts[1] if len(parts) == 2 else ''
        high = ValueParser.parse_number(high) if high else (None if low is None else low + 1)

        if low is None or high is None:
            raise MalformedOperatorError('size_between', 'size_between requires valid numeric values')

        return {'$gte': low, '$lte': high}
