class BaseMongoPipeException(Exception):
    pass


class InvalidQueryError(BaseMongoPipeException):
    """ Invalid input provided by the User """

    def __init__(self, err: str):
        self.err = err
        super(InvalidQueryError, self).__init__(err)


class QueryLimitError(InvalidQueryError):
    """ The query is too big to be compiled

        These limits cap the cost of compiling a single request, so they're always reported to the caller.
    """

    def __init__(self, what: str, value: int, maximum: int):
        self.value = value
        self.maximum = maximum
        super(QueryLimitError, self).__init__('{what}: {value}{unit} (max: {maximum})'.format(
            what=what, value=value, unit=self._unit, maximum=maximum))

    _unit = ''


class TooManyFieldsError(QueryLimitError):
    """ The query string has more keys than `max_query_fields` """

    def __init__(self, value: int, maximum: int):
        super(TooManyFieldsError, self).__init__('Too many query fields', value, maximum)


class ValueTooLongError(QueryLimitError):
    """ A single value is longer than MAX_STRING_LENGTH """

    _unit = ' characters'

    def __init__(self, value: int, maximum: int):
        super(ValueTooLongError, self).__init__('Input value too long', value, maximum)


class ArrayTooLargeError(QueryLimitError):
    """ An `in` / `nin` list has more items than `max_array_size` """

    _unit = ' items'

    def __init__(self, value: int, maximum: int):
        super(ArrayTooLargeError, self).__init__('Array too large', value, maximum)


class MalformedOperatorError(InvalidQueryError):
    """ An operator has received an operand it cannot work with (wrong arity, not a number) """

    def __init__(self, operator: str, err: str):
        self.operator = operator
        super(MalformedOperatorError, self).__init__(err)


class UnsupportedOperatorError(InvalidQueryError):
    """ Query mentioned an unknown filter operator """

    def __init__(self, operator: str):
        self.operator = operator
        super(UnsupportedOperatorError, self).__init__(
            'Unsupported filter operator: {operator}'.format(operator=operator))


#: Errors that abort the whole request. Anything else is scoped to a single query key.
REQUEST_LEVEL_ERRORS = (QueryLimitError, MalformedOperatorError)
