"""
### Filters

Filtering corresponds to the `$match` stage of an aggregation pipeline.

Three syntaxes are supported, and they can be used together:

* Bracket syntax: `filters[<field>]=<value>`. Equality.

    ```
    GET /api/user?filters[role]=admin&filters[age]=18
    ```

* Direct syntax: `<field>=<value>`. Equality.
  Only works for fields explicitly listed in `filter_fields`, because otherwise
  any query string parameter would become a filter.

    ```
    GET /api/user?role=admin
    ```

* Operator syntax: `<field>__<operator>=<value>`. See `mongopipe.operators` for the list of operators.

    ```
    GET /api/user?age__gte=18&age__lte=65
    ```

    Multiple operators on the same field are merged: `{ age: { $gte: 18, $lte: 65 } }`

Values are typed automatically: see `mongopipe.values`.

#### Field allow-list
A field can be filtered by when:

* It is listed in `filter_fields`, or
* `filter_fields` contains a wildcard: `*`, or
* It starts with `filter_prefix`

The `createdAt`, `updatedAt`, `deletedAt` fields are always allowed; when `filter_fields` is not configured,
they are the only ones. Field names that start with `$` are never allowed: they are MongoDB operators.

A filter on a field that is not allowed, or with an unknown operator, is ignored:
the rest of the query still works.
"""

import logging
import re
from collections import OrderedDict
from typing import NamedTuple

from .base import QueryHandlerBase
from ..array_size import ArraySizeHelper, ArraySizeResult, OPERATOR_KEY_REGEX
from ..exc import InvalidQueryError, TooManyFieldsError, REQUEST_LEVEL_ERRORS
from ..operators import FilterOperatorHandler, MAX_ARRAY_SIZE
from ..values import ValueParser

logger = logging.getLogger(__name__)

#: Fields that can always be filtered by
DEFAULT_FILTER_FIELDS = ('createdAt', 'updatedAt', 'deletedAt')

#: The largest number of keys a query string can have
MAX_QUERY_FIELDS = 100

#: An allow-list entry that allows every field
WILDCARD = '*'

#: Field names can't start with it: those are MongoDB operators
OPERATOR_PREFIX = '$'

#: `filters[<field>]` query keys
FILTER_KEY_REGEX = re.compile(r'^filters\[(.*?)\]$')


class FilterParseResult(NamedTuple):
    #: { field: value | { $operator: value } }
    filters: dict
    #: Pipeline stages for array size filters
    array_size: ArraySizeResult


def merge_filter(filters, field, value):
    """ Merge a condition for a field into filters. Returns a new dict.

        * A new field is just added
        * Two operator dicts are merged, key by key: {$gte: 1} + {$lte: 5} = {$gte: 1, $lte: 5}
        * An operator dict added to an equality value turns the latter into `$eq`
        * A plain value never replaces an existing condition

        :type filters: dict
        :rtype: dict
    """
    if field not in filters:
        return {**filters, field: value}

    existing = filters[field]
    if not isinstance(value, dict):
        return filters  # the earlier condition wins

    if isinstance(existing, dict):
        merged = {**existing, **value}
    else:
        merged = {'$eq': existing, **value}
    return {**filters, field: merged}


class FilterParser(QueryHandlerBase):
    """ Filters: parse every supported filter syntax into one filter object

        * filters[name]=value
        * name=value
        * name__operator=value

        Supported: allow-listed fields, prefixed fields, wildcard
    """

    query_section_name = 'filters'

    def __init__(self,
                 filter_fields=None,
                 filter_prefix=None,
                 filter_operators=None,
                 max_query_fields=MAX_QUERY_FIELDS,
                 max_array_size=MAX_ARRAY_SIZE):
        """ Init the filter parser

        :param filter_fields: Fields the API user can filter by. `['*']` allows every field.
            When not given, only the default fields can be filtered by.
        :param filter_prefix: Fields that start with this prefix can be filtered by, even when not listed
        :param filter_operators: Additional operators: {'operator': lambda handler, field, value}
        :param max_query_fields: The largest number of keys a query can have
        :param max_array_size: The largest number of values `in` and `nin` accept
        """
        super(FilterParser, self).__init__()

        # Config
        self.filter_fields = tuple(OrderedDict.fromkeys(
            tuple(filter_fields or ()) + DEFAULT_FILTER_FIELDS
        ))
        self.filter_prefix = filter_prefix
        self.max_query_fields = max_query_fields or MAX_QUERY_FIELDS

        # Internal
        self._allowed_fields = frozenset(self.filter_fields)
        self.operators = FilterOperatorHandler(max_array_size=max_array_size,
                                               operators=filter_operators)
        self.array_size = ArraySizeHelper(is_allowed_field=self.is_allowed_field)

    def parse(self, query):
        """ Parse filters from a raw query

        :param query: The raw query
        :rtype: FilterParseResult
        :raises TooManyFieldsError: the query has too many keys
        :raises QueryLimitError: a value or a list is too big
        :raises MalformedOperatorError: an operand is invalid
        """
        self.check_query_size(query)

        array_size = self.array_size.parse_query(query)

        # The order is important: earlier syntaxes take precedence
        filters = {}
        filters = self._parse_bracket_filters(query, filters)
        filters = self._parse_direct_filters(query, filters)
        filters = self._parse_operator_filters(query, filters)

        return FilterParseResult(filters, array_size)

    def check_query_size(self, query):
        """ Fail when the query has too many keys

        :raises TooManyFieldsError
        """
        if len(query) > self.max_query_fields:
            raise TooManyFieldsError(len(query), self.max_query_fields)

    def is_allowed_field(self, field):
        """ Can the API user filter by this field? """
        if not field or field.startswith(OPERATOR_PREFIX):
            return False  # `$where`, `$or`, etc
        if field in self._allowed_fields:
            return True
        if WILDCARD in self._allowed_fields:
            return True
        if self.filter_prefix and field.startswith(self.filter_prefix):
            return True
        return False

    def _parse_bracket_filters(self, query, filters):
        """ filters[field]=value """
        for key, value in query.items():
            m = FILTER_KEY_REGEX.match(key)
            if not m:
                continue

            field = m.group(1)
            if not field:
                continue
            if not self.is_allowed_field(field):
                logger.warning('Filter on a field that is not allowed: %s', key)
                continue

            try:
                filters = merge_filter(filters, field, ValueParser.parse(field, value))
            except REQUEST_LEVEL_ERRORS:
                raise
            except InvalidQueryError as e:
                logger.warning('Bracket filter parsing error for %s: %s', key, e)
        return filters

    def _parse_direct_filters(self, query, filters):
        """ field=value, for fields listed in `filter_fields` """
        for field in self.filter_fields:
            if field == WILDCARD or field not in query or field in filters:
                continue
            if not self.is_allowed_field(field):
                logger.warning('Filter on a field that is not allowed: %s', field)
                continue

            try:
                filters = merge_filter(filters, field, ValueParser.parse(field, query[field]))
            except REQUEST_LEVEL_ERRORS:
                raise
            except InvalidQueryError as e:
                logger.warning('Direct filter parsing error for %s: %s', field, e)
        return filters

    def _parse_operator_filters(self, query, filters):
        """ field__operator=value """
        for key, value in query.items():
            m = OPERATOR_KEY_REGEX.match(key)
            if not m:
                continue

            field, operator = m.groups()
            if self.operators.is_array_size_operator(operator):
                continue  # handled by ArraySizeHelper
            if not self.is_allowed_field(field):
                logger.warning('Filter on a field that is not allowed: %s', key)
                continue
            if not self.operators.is_valid_operator(operator):
                logger.warning('Unsupported filter operator "%s" in %s', operator, key)
                continue

            try:
                filters = merge_filter(filters, field, self.operators.apply(operator, field, value))
            except REQUEST_LEVEL_ERRORS:
                raise
            except InvalidQueryError as e:
                logger.warning('Operator filter parsing error for %s: %s', key, e)
        return filters

    def __repr__(self):
        return '{}(filter_fields={!r})'.format(self.__class__.__name__, self.filter_fields)
