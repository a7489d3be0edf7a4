"""
### Pagination

Pagination corresponds to the `$skip` and `$limit` stages of an aggregation pipeline.

* `page`: the page number, starting with 1
* `limit`: the number of items per page

Example:

```
GET /api/user?page=3&limit=100   // skip 200 items, return 100
```

Invalid values (non-numeric, zero, negative) fall back to the defaults: page 1, and `default_limit` items.
The limit never exceeds `max_limit`: the API user can never go any higher than that.
"""

import math

from .base import QueryHandlerBase
from ..values import ValueParser

#: The default number of items per page
DEFAULT_LIMIT = 10

#: The default maximum number of items per page
MAX_LIMIT = 100


class PaginationHandler(QueryHandlerBase):
    """ Page and limit

        Handles two keys:
        * 'page': int, >= 1
        * 'limit': int, 1 .. max_limit
    """

    query_section_name = 'limit'

    def __init__(self, max_limit=MAX_LIMIT, default_limit=DEFAULT_LIMIT):
        """ Init pagination

        :param max_limit: The maximum number of items that can be loaded with one query.
            This value is forced onto every query.
        :param default_limit: The number of items to load when the query has no limit
        """
        super(PaginationHandler, self).__init__()

        # Config
        self.max_limit = max_limit or MAX_LIMIT
        self.default_limit = min(default_limit or DEFAULT_LIMIT, self.max_limit)
        assert self.max_limit > 0
        assert self.default_limit > 0

    def parse(self, query):
        """ Get (page, limit)

        :rtype: tuple[int, int]
        """
        return self.parse_page(query.get('page')), self.parse_limit(query.get('limit'))

    def parse_page(self, page):
        page = self._parse_positive_int(page)
        return max(1, page or 1)

    def parse_limit(self, limit):
        limit = self._parse_positive_int(limit)
        return min(limit or self.default_limit, self.max_limit)

    @staticmethod
    def _parse_positive_int(value):
        """ Parse a number, truncate it. Anything that is not a positive number becomes None """
        number = ValueParser.parse_number(value)
        if number is None:
            return None
        number = math.floor(number)
        return number if number > 0 else None
