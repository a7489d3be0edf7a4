from collections import OrderedDict

from .array_size import ArraySizeResult

#: Export formats the API user can ask for
EXPORT_FORMATS = frozenset(('json', 'csv', 'xlsx'))


class QueryParams:
    """ A parsed, typed query

        Created by QueryParser.parse() for every request, and thrown away once the pipeline is built.

        * `page`: int >= 1
        * `limit`: int, 1 .. max_limit
        * `sort`: OrderedDict({ field: +1|-1 }), never empty
        * `search`: the search term, or None
        * `search_fields`: fields to search in (a subset of configured fields), or None
        * `filters`: { field: value | { $operator: value } }
        * `include`, `exclude`, `lookup`: lists of field names, or None
        * `format`: 'json' | 'csv' | 'xlsx' | None
        * `array_size`: ArraySizeResult
    """

    __slots__ = ('page', 'limit', 'sort',
                 'search', 'search_fields',
                 'filters',
                 'include', 'exclude', 'lookup',
                 'format', 'array_size')

    def __init__(self, page=1, limit=10, sort=None,
                 search=None, search_fields=None,
                 filters=None,
                 include=None, exclude=None, lookup=None,
                 format=None, array_size=None):
        self.page = page
        self.limit = limit
        self.sort = sort if sort is not None else OrderedDict()
        self.search = search
        self.search_fields = search_fields
        self.filters = filters if filters is not None else {}
        self.include = include
        self.exclude = exclude
        self.lookup = lookup
        self.format = format
        self.array_size = array_size if array_size is not None else ArraySizeResult()

    @property
    def skip(self):
        """ The number of items to skip to get to the current page """
        return (self.page - 1) * self.limit

    def as_dict(self):
        return {name: getattr(self, name) for name in self.__slots__}

    def __eq__(self, other):
        if not isinstance(other, QueryParams):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self):
        return '{}({})'.format(
            self.__class__.__name__,
            ', '.join('{}={!r}'.format(k, v)
                      for k, v in self.as_dict().items()
                      if v is not None))
