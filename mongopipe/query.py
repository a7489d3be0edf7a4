import logging

from . import handlers
from .params import QueryParams, EXPORT_FORMATS
from .util import QuerySettingsHandler

logger = logging.getLogger(__name__)


class QueryParser(object):
    """ Parse query strings into QueryParams, and compile them into MongoDB conditions

        A QueryParser is configured once per resource type, and reused for every request:

            user_query = QueryParser(QueryOptions(
                search_fields=('name', 'email'),
                filter_fields=('role', 'age'),
            ))

            params = user_query.parse(request.args)
            collection.find(user_query.build_query(params), user_query.build_projection(params))

        It keeps no state between requests: every parse() returns a fresh QueryParams object.
    """

    def __init__(self, options=None):
        """ Init a query parser

        :param options: Settings for the query handlers. See QueryOptions for the full list.
            These are just plain kwargs names for every handler object's __init__ method:
            you don't have to specify which handler receives which setting.
        :type options: dict | mongopipe.QueryOptions
        :raises KeyError: unknown settings were given
        """
        self._settings = QuerySettingsHandler(options or {})

        #: Per-section opt-outs: { section name: True }
        self.skip_query_parser = dict(self._settings.get('skip_query_parser', {}))

        # Init handlers
        self._init_query_handlers()
        self._settings.raise_if_invalid_handler_settings(self)

    # region Handlers

    _QO_HANDLER_FILTER = handlers.FilterParser
    _QO_HANDLER_SORT = handlers.SortHandler
    _QO_HANDLER_LIMIT = handlers.PaginationHandler
    _QO_HANDLER_SEARCH = handlers.SearchHandler
    _QO_HANDLER_PROJECT = handlers.ProjectionHandler

    HANDLER_NAMES = frozenset(('filter',
                               'sort',
                               'limit',
                               'search',
                               'project'))

    def _init_query_handlers(self):
        """ Initialize every handler with its settings """
        for name in sorted(self.HANDLER_NAMES):
            handler_cls = getattr(self, '_QO_HANDLER_' + name.upper())
            handler = handler_cls(**self._settings.get_settings(name, handler_cls))
            setattr(self, 'handler_' + name, handler)

    # endregion

    def skips(self, section):
        """ Is this section of the query ignored? """
        return bool(self.skip_query_parser.get(section))

    def parse(self, raw_query):
        """ Parse a raw query into QueryParams

        :param raw_query: Query string parameters: { key: string value }
        :type raw_query: Mapping[str, str]
        :rtype: QueryParams
        :raises mongopipe.exc.QueryLimitError: the query is too large
        :raises mongopipe.exc.MalformedOperatorError: an operator was given a malformed value
        """
        raw_query = raw_query or {}
        params = QueryParams(limit=self.handler_limit.default_limit,
                             sort=self.handler_sort.get_default_sort())

        # The size of the whole query is checked first
        self.handler_filter.check_query_size(raw_query)
        if not self.skips('filters'):
            params.filters, params.array_size = self.handler_filter.parse(raw_query)

        page, limit = self.handler_limit.parse(raw_query)
        if not self.skips('page'):
            params.page = page
        if not self.skips('limit'):
            params.limit = limit

        if not self.skips('sort'):
            params.sort = self.handler_sort.parse(raw_query)

        if not self.skips('search'):
            params.search = self.handler_search.parse(raw_query)
        if not self.skips('searchFields'):
            params.search_fields = self.handler_search.parse_search_fields(raw_query)

        include, exclude, lookup = self.handler_project.parse(raw_query)
        if not self.skips('include'):
            params.include = include
        if not self.skips('exclude'):
            params.exclude = exclude
        if not self.skips('lookup'):
            params.lookup = lookup

        if not self.skips('format'):
            params.format = self._parse_format(raw_query.get('format'))

        return params

    def _parse_format(self, format):
        if not format:
            return None
        if format not in EXPORT_FORMATS:
            logger.warning('Unsupported export format: %s', format)
            return None
        return format

    def build_query(self, params):
        """ Compile QueryParams into a MongoDB filter

        The search goes first, then the filters are added.
        No validation is done here: the filters have been validated by parse()

        :type params: QueryParams
        :rtype: dict
        """
        query = {}

        if params.search and not self.skips('search'):
            condition = self.handler_search.compile_condition(params.search, params.search_fields)
            if condition:
                query.update(condition)

        query.update(params.filters)
        return query

    def build_projection(self, params):
        """ Compile QueryParams into a MongoDB projection

        :type params: QueryParams
        :rtype: dict | None
        """
        return self.handler_project.compile_projection(params.include, params.exclude)

    def __repr__(self):
        return '{}({})'.format(self.__class__.__name__, self._settings)
