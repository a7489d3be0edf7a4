from typing import *


class QueryOptions(dict):
    """ QueryParser settings container.

        Is only used for nice autocompletion and documentation purposes! :)
        A plain dict with the same keys works just as well.

        The keyword settings in this object are just plain kwargs names
        for every handler object's __init__ method,
        which are fed to subclasses of QueryHandlerBase by QuerySettingsHandler.

        Settings are configured once per resource type:

            user_query = QueryParser(QueryOptions(
                search_fields=('name', 'email'),
                filter_fields=('role', 'age', 'tags'),
                sort_fields=('name', 'age'),
                max_limit=50,
            ))
    """

    def __init__(self,
                 # --- search
                 search_fields: Iterable[str] = None,
                 # --- filters
                 filter_fields: Iterable[str] = None,
                 filter_prefix: str = None,
                 filter_operators: Mapping[str, Callable] = None,
                 max_query_fields: int = None,
                 max_array_size: int = None,
                 # --- sort
                 sort_fields: Iterable[str] = None,
                 default_sort: Mapping[str, int] = None,
                 # --- project
                 include_fields: Iterable[str] = None,
                 # --- limit
                 max_limit: int = None,
                 default_limit: int = None,
                 # --- opt-outs
                 skip_query_parser: Mapping[str, bool] = None,
                 ):
        """ Settings for a QueryParser

        Args:
            search_fields (list[str]): (for: search)
                Fields that `?search=` looks in. Default: `['name']`.
                The API user can narrow it down with `?searchFields=`, but not extend it.
            filter_fields (list[str]): (for: filters)
                Fields the API user can filter by.
                Default: only the default fields. Add `'*'` to the list to allow any field.
                `createdAt`, `updatedAt`, `deletedAt` are always allowed.
                Fields listed here can also be filtered by directly: `?role=admin`
            filter_prefix (str): (for: filters)
                Fields that start with this prefix can be filtered by even when not listed in `filter_fields`.
                Example: `'meta.'`
            filter_operators (dict[str, callable]): (for: filters)
                Additional filter operators: {'operator': lambda handler, field, value: {...}}
            max_query_fields (int): (for: filters)
                The largest number of keys a query string can have. Default: 100
            max_array_size (int): (for: filters)
                The largest number of values `__in` and `__nin` accept. Default: 1000
            sort_fields (list[str]): (for: sort)
                Fields the API user can sort by. `createdAt` and `updatedAt` are always allowed.
            default_sort (dict[str, int]): (for: sort)
                The sort used when the query has none: `{'createdAt': -1}` by default.
                Use an OrderedDict, or a list of tuples, when you sort by more than one field.
            include_fields (list[str]): (for: project)
                Fields the API user can `?include=`. Default: every field.
            max_limit (int): (for: limit)
                The maximum number of items per page. Default: 100
            default_limit (int): (for: limit)
                The number of items per page when the query has no limit. Default: 10
            skip_query_parser (dict[str, bool]): (for: QueryParser)
                Opt-outs: sections of the query that are ignored.
                `{'search': True}` ignores the search; `{'filters': True}` ignores all filters; etc.
                `{'query': True}` tells PipelineBuilder not to add a `$match` stage at all.
        """
        # Only pass the values that were actually given, so that handler defaults apply
        super().__init__({k: v for k, v in locals().items()
                          if k not in ('self', '__class__') and v is not None})
