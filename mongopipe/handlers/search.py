"""
### Search

A full-text-like search across several fields at once:
a case-insensitive regular expression, matched against every field in `search_fields`.
A document matches when any of the fields does.

```
GET /api/user?search=john
GET /api/user?q=john
```

Becomes:

```javascript
{ $or: [ { name: { $regex: 'john', $options: 'i' } }, { email: { $regex: 'john', $options: 'i' } } ] }
```

The API user may search a subset of the fields:

```
GET /api/user?search=john&searchFields=email
```

Fields that are not listed in `search_fields` are ignored.
"""

from .base import QueryHandlerBase
from ..exc import ValueTooLongError
from ..operators import regex_condition
from ..values import MAX_STRING_LENGTH

#: Fields searched by default
DEFAULT_SEARCH_FIELDS = ('name',)


class SearchHandler(QueryHandlerBase):
    """ Search

        Handles:
        * 'search' or 'q': the search term
        * 'searchFields': comma-separated fields to search in
    """

    query_section_name = 'search'

    def __init__(self, search_fields=None):
        """ Init search

        :param search_fields: Fields to search in
        """
        super(SearchHandler, self).__init__()

        # Config
        self.search_fields = tuple(DEFAULT_SEARCH_FIELDS if search_fields is None else search_fields)

    def parse(self, query):
        """ Get the search term

        :rtype: str | None
        :raises ValueTooLongError
        """
        search = query.get('search') or query.get('q') or None
        if search is not None and len(search) > MAX_STRING_LENGTH:
            raise ValueTooLongError(len(search), MAX_STRING_LENGTH)
        return search

    def parse_search_fields(self, query):
        """ Get the fields the API user wants to search in

        :rtype: list[str] | None
        """
        fields = self.parse_comma_separated(query.get('searchFields'))
        if fields and self.search_fields:
            fields = [f for f in fields if f in self.search_fields]
        return fields or None

    def compile_condition(self, search, search_fields=None):
        """ Compile a search into an $or condition

        :param search: The search term
        :param search_fields: Fields to search in; default: all `search_fields`
        :return: { $or: [...] }, or None when there's nothing to search
        :rtype: dict | None
        """
        fields = search_fields or self.search_fields
        if not search or not fields:
            return None

        condition = regex_condition(search)
        return {'$or': [{field: dict(condition)} for field in fields]}

    def __repr__(self):
        return '{}(search_fields={!r})'.format(self.__class__.__name__, self.search_fields)
