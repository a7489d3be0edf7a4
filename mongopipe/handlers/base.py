class QueryHandlerBase:
    """ An implementation of a handler for QueryParser

        Every subclass handles one section of the query string: filters, sort, pagination, etc.

        Unlike the query itself, a handler is long-lived: it is configured once, at init time,
        and then its parse() is called for every request. Therefore, handlers keep no state
        between parse() calls, and can be shared by concurrent requests.
    """

    #: Name of the QueryParams section that this object is capable of handling
    query_section_name = None

    def __init__(self):
        """ Initialize the handler.

        This method does *not* receive any input data: it only receives settings.

        NOTE: Any arguments that subclasses give default values to will be treated as handler settings!!
        """

    def parse(self, query):
        """ Get the section of QueryParams from the raw query

        :param query: The raw query: a flat {key: string value} dict
        :type query: Mapping[str, str]
        :raises InvalidQueryError
        """
        raise NotImplementedError()

    def __repr__(self):
        return '{}()'.format(self.__class__.__name__)

    @staticmethod
    def parse_comma_separated(value):
        """ Split a comma-separated list. Empty items are dropped.

        :rtype: list[str] | None
        """
        if not value or not isinstance(value, str):
            return None
        return [item.strip()
                for item in value.split(',')
                if item.strip()]
