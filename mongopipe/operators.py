"""
### Filter Operators

A filter operator is appended to a field name with a double underscore: `<field>__<operator>=<value>`.

```
GET /api/user?age__gte=18&age__lte=65&role__in=admin,editor&name__regex=^jo
```

Supports the following operators:

* `field__gt=1`, `field__gte=1`, `field__lt=1`, `field__lte=1`: comparison
* `field__ne=1`: inequality
* `field__in=a,b,c`: any of. Comma-separated values.
* `field__nin=a,b,c`: none of. Comma-separated values.
* `field__regex=^jo`: case-insensitive regular expression.
  If the expression does not compile, it's escaped and used as a literal.
* `field__exists=true`: the field is present (`true`) or absent (anything else)
* `field__between=10,20`: inclusive range: `10 <= field <= 20`

Every operand goes through value parsing, so `age__gte=18` compares against a number,
and `createdAt__gte=1700000000000` compares against a date.

Array length operators (`field__size_gt=3`, etc) are not handled here: see `mongopipe.array_size`.
"""

import re

from .exc import ArrayTooLargeError, MalformedOperatorError, UnsupportedOperatorError, ValueTooLongError
from .values import ValueParser, MAX_STRING_LENGTH


#: The largest number of values accepted by `in` / `nin`
MAX_ARRAY_SIZE = 1000

#: Operators that compare the length of an array. They need a pipeline, not a plain $match
ARRAY_SIZE_OPERATORS = frozenset((
    'size_gt', 'size_gte', 'size_lt', 'size_lte', 'size_eq', 'size_ne', 'size_between',
))

# Characters escaped when a regular expression fails to compile.
# NOTE: a backslash is not escaped, so an expression with a dangling backslash stays invalid.
_REGEX_FALLBACK_ESCAPE = re.compile(r'[.*+?^${}()|\[\]]')


def _parse_list(handler, field, value):
    """ Split a comma-separated list, parse every item, drop the empty ones """
    values = [ValueParser.parse(field, v.strip()) for v in value.split(',')]
    values = [v for v in values if v is not None and v != '']

    if len(values) > handler.max_array_size:
        raise ArrayTooLargeError(len(values), handler.max_array_size)
    return values


# `{m}`, `{m,}`, `{m,n}`, `{,n}` at the end of a string
_BOUNDED_REPEAT_END = re.compile(r'(?<!\\)\{(?:\d+,?\d*|,\d+)\}\Z', re.ASCII)


def _has_possessive_syntax(pattern):
    """ Does the pattern use possessive quantifiers (`a++`, `a*+`, `a{2}+`) or atomic groups (`(?>a)`)?

        Only Python 3.11+ compiles those. They're considered invalid on every version,
        so that the same input always gives the same condition.
    """
    i, in_class, after_quantifier = 0, False, False
    while i < len(pattern):
        c = pattern[i]
        if c == '\\':
            i += 2
            after_quantifier = False
            continue

        quantifier = False
        if in_class:
            in_class = c != ']'
        elif c == '[':
            in_class = True
            # `]` right after `[` or `[^` is a literal
            if pattern.startswith('^', i + 1):
                i += 1
            if pattern.startswith(']', i + 1):
                i += 1
        elif c == '+' and after_quantifier:
            return True
        elif pattern.startswith('(?>', i):
            return True
        else:
            quantifier = c in '*+?' or (c == '}' and _BOUNDED_REPEAT_END.search(pattern, 0, i + 1) is not None)

        after_quantifier = quantifier
        i += 1
    return False


def regex_condition(value):
    """ A case-insensitive $regex condition. An expression that does not compile is escaped """
    if len(value) > MAX_STRING_LENGTH:
        raise ValueTooLongError(len(value), MAX_STRING_LENGTH)

    try:
        re.compile(value)
        valid = not _has_possessive_syntax(value)
    except re.error:
        valid = False

    if not valid:
        value = _REGEX_FALLBACK_ESCAPE.sub(r'\\\g<0>', value)
    return {'$regex': value, '$options': 'i'}


def _between(handler, field, value):
    parts = [v.strip() for v in value.split(',')]
    if len(parts) != 2:
        raise MalformedOperatorError('between', 'between operator requires format: "min,max"')

    low, high = (ValueParser.parse(field, v) for v in parts)
    return {'$gte': low, '$lte': high}


class FilterOperatorHandler:
    """ Registry of filter operators

        Every operator is a function that receives the field name and the raw value,
        and returns a comparison expression for that field:

            handler.apply('gte', 'age', '18')  #-> {'$gte': 18}
    """

    # Supported operators
    # operator => lambda handler, field, value
    _operators = {
        'gt':  lambda h, field, value: {'$gt': ValueParser.parse(field, value)},
        'gte': lambda h, field, value: {'$gte': ValueParser.parse(field, value)},
        'lt':  lambda h, field, value: {'$lt': ValueParser.parse(field, value)},
        'lte': lambda h, field, value: {'$lte': ValueParser.parse(field, value)},
        'ne':  lambda h, field, value: {'$ne': ValueParser.parse(field, value)},
        'in':  lambda h, field, value: {'$in': _parse_list(h, field, value)},
        'nin': lambda h, field, value: {'$nin': _parse_list(h, field, value)},
        'regex': lambda h, field, value: regex_condition(value),
        'exists': lambda h, field, value: {'$exists': value == 'true'},
        'between': _between,
    }

    def __init__(self, max_array_size=MAX_ARRAY_SIZE, operators=None):
        """ Init the registry

        :param max_array_size: The largest number of values `in` and `nin` accept
        :param operators: A dict of additional operators to recognize.
            A mapping: {'operator': lambda handler, field, value}.
            Array size operator names can't be used.
        :type operators: dict[str, callable]
        """
        self.max_array_size = max_array_size or MAX_ARRAY_SIZE
        assert self.max_array_size > 0

        self._extra_operators = dict(operators or {})
        assert not ARRAY_SIZE_OPERATORS & set(self._extra_operators), \
            'Array size operators can not be overridden'

    @staticmethod
    def is_array_size_operator(operator):
        return operator in ARRAY_SIZE_OPERATORS

    def is_valid_operator(self, operator):
        """ Is this a known operator? Array size operators are known, too. """
        return operator in self._operators \
               or operator in self._extra_operators \
               or operator in ARRAY_SIZE_OPERATORS

    def apply(self, operator, field, value):
        """ Apply an operator: get a comparison expression

        :param operator: Operator name, without the underscores: 'gte'
        :param field: Field name. Value parsing depends on it.
        :param value: The raw string value
        :rtype: dict
        :raises UnsupportedOperatorError: unknown operator
        :raises MalformedOperatorError: wrong operand for `between`
        :raises ArrayTooLargeError: too many values for `in` / `nin`
        :raises ValueTooLongError: the value is too long
        """
        if operator in ARRAY_SIZE_OPERATORS:
            raise RuntimeError('Array size operator {} should be handled by ArraySizeHelper'
                               .format(operator))

        try:
            operator_lambda = self._operators.get(operator) or self._extra_operators[operator]
        except KeyError:
            raise UnsupportedOperatorError(operator)

        return operator_lambda(self, field, value)


FILTER_OPERATORS = frozenset(FilterOperatorHandler._operators)
