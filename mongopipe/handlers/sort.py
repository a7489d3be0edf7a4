"""
### Sort

Sorting corresponds to the `$sort` stage of an aggregation pipeline.

#### Syntax

* Comma syntax.

    List of `field:direction` pairs, separated by commas.
    The direction is `asc` or `desc`, and is optional. The default is `asc`.
    Anything but an exact `desc` is ascending.

    Example:

    ```
    GET /api/user?sort=age:desc,name   // -> { age: -1, name: +1 }
    ```

* Object syntax

    A single field, and its direction:

    ```
    GET /api/user?order[field]=age&order[direction]=desc
    ```

Fields that are not listed in `sort_fields` are silently ignored.
If no valid field is left, the `default_sort` is used.
"""

from collections import OrderedDict

from .base import QueryHandlerBase

#: Fields that can always be sorted by
DEFAULT_SORT_FIELDS = ('createdAt', 'updatedAt')

#: The sort used when the query has none
DEFAULT_SORT = (('createdAt', -1),)


class SortHandler(QueryHandlerBase):
    """ Sorting

        * 'sort': 'a:desc,b' - comma-separated `field[:asc|desc]` pairs
        * 'order[field]', 'order[direction]': one field

        Result: OrderedDict({ a: -1, b: +1 })
    """

    query_section_name = 'sort'

    def __init__(self, sort_fields=None, default_sort=None):
        """ Init sorting

        :param sort_fields: Fields the API user can sort by. An empty list allows every field.
            `createdAt` and `updatedAt` are always allowed.
        :param default_sort: The sort to use when the query has no (valid) sort: {field: +1|-1}
        :type default_sort: dict | list[tuple[str, int]]
        """
        super(SortHandler, self).__init__()

        # Config
        self.sort_fields = tuple(OrderedDict.fromkeys(
            tuple(sort_fields or ()) + DEFAULT_SORT_FIELDS
        ))
        self.default_sort = tuple(OrderedDict(default_sort or DEFAULT_SORT).items())
        assert all(d in {-1, +1} for f, d in self.default_sort), 'Sort direction can be either +1 or -1'

        # Internal
        self._allowed_fields = frozenset(self.sort_fields)

    def parse(self, query):
        """ Get the sort spec

        :rtype: OrderedDict
        """
        sort = query.get('sort')
        if sort:
            return self._parse_comma_format(sort)

        field, direction = query.get('order[field]'), query.get('order[direction]')
        if field and direction:
            return self._parse_object_format(field, direction)

        return self.get_default_sort()

    def get_default_sort(self):
        """ Get a fresh copy of the default sort """
        return OrderedDict(self.default_sort)

    def is_allowed_field(self, field):
        return not self._allowed_fields or field in self._allowed_fields

    def _parse_comma_format(self, sort):
        if not isinstance(sort, str):
            return self.get_default_sort()

        spec = OrderedDict()
        for pair in sort.split(','):
            field, _, direction = pair.partition(':')
            field = field.strip()
            if field and self.is_allowed_field(field):
                spec[field] = self._direction(direction)

        return spec or self.get_default_sort()

    def _parse_object_format(self, field, direction):
        field = field.strip()
        if not self.is_allowed_field(field):
            return self.get_default_sort()
        return OrderedDict([(field, self._direction(direction))])

    @staticmethod
    def _direction(direction):
        """ Only 'desc' is descending: 'DESC' is not """
        return -1 if direction.strip() == 'desc' else +1

    def __repr__(self):
        return '{}(sort_fields={!r})'.format(self.__class__.__name__, self.sort_fields)
