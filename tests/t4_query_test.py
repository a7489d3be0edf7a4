import logging
import unittest
from collections import OrderedDict
from datetime import datetime, timezone

from mongopipe import QueryParser, QueryOptions, QueryParams, ArraySizeResult
from mongopipe.exc import *


class QueryParserTest(unittest.TestCase):
    """ Test QueryParser: parsing, and compiling """

    maxDiff = None

    @classmethod
    def setUpClass(cls):
        logging.basicConfig(level=logging.DEBUG)

    def test_defaults(self):
        params = QueryParser().parse({})
        self.assertEqual(params, QueryParams(
            page=1,
            limit=10,
            sort=OrderedDict([('createdAt', -1)]),
            filters={},
            array_size=ArraySizeResult(),
        ))
        self.assertEqual(params.skip, 0)

        # None is an empty query
        self.assertEqual(QueryParser().parse(None), params)

    def test_scenario_pagination_and_filters(self):
        qp = QueryParser(QueryOptions(filter_fields=['status']))
        params = qp.parse({'page': '2', 'limit': '5', 'status__in': 'a,b,c'})

        self.assertEqual(params.page, 2)
        self.assertEqual(params.limit, 5)
        self.assertEqual(params.skip, 5)
        self.assertEqual(params.filters, {'status': {'$in': ['a', 'b', 'c']}})

    def test_scenario_sort(self):
        qp = QueryParser(QueryOptions(sort_fields=['name', 'age']))
        params = qp.parse({'sort': 'name:desc,age'})
        self.assertEqual(params.sort, OrderedDict([('name', -1), ('age', 1)]))
        self.assertEqual(list(params.sort), ['name', 'age'])

    def test_scenario_between(self):
        qp = QueryParser(QueryOptions(filter_fields=['*']))
        params = qp.parse({'price__between': '10,20'})
        self.assertEqual(params.filters, {'price': {'$gte': 10, '$lte': 20}})

        with self.assertRaises(MalformedOperatorError):
            qp.parse({'price__between': '10'})

    def test_scenario_date(self):
        params = QueryParser().parse({'createdAt': '1700000000000'})
        self.assertEqual(params.filters, {'createdAt': datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)})

    def test_scenario_array_size(self):
        params = QueryParser(QueryOptions(filter_fields=['*'])).parse({'items__size_between': '2,5'})
        self.assertTrue(params.array_size.needs_pipeline)
        self.assertEqual(params.array_size.match, {'itemsCount': {'$gte': 2, '$lte': 5}})

        add_fields, match = params.array_size.pipeline
        self.assertIn('itemsCount', add_fields['$addFields'])
        self.assertEqual(match, {'$match': {'itemsCount': {'$gte': 2, '$lte': 5}}})

        # Not in the structured filters
        self.assertEqual(params.filters, {})

    def test_pagination(self):
        qp = QueryParser(QueryOptions(max_limit=50, default_limit=20))

        for page in ('-1', '0', 'abc', '', ' ', None, '1e999', '-0.5'):
            self.assertEqual(qp.parse({'page': page}).page, 1, page)
        for limit in ('-1', '0', 'abc', '', None):
            self.assertEqual(qp.parse({'limit': limit}).limit, 20, limit)

        # Truncated
        self.assertEqual(qp.parse({'page': '2.7'}).page, 2)
        self.assertEqual(qp.parse({'limit': '5.9'}).limit, 5)

        # Capped
        self.assertEqual(qp.parse({'limit': '1000'}).limit, 50)
        self.assertEqual(qp.parse({'limit': '50'}).limit, 50)
        self.assertEqual(qp.parse({'limit': '1'}).limit, 1)

        # Skip
        self.assertEqual(qp.parse({'page': '3', 'limit': '20'}).skip, 40)

    def test_default_limit_is_capped(self):
        qp = QueryParser(QueryOptions(max_limit=5))
        self.assertEqual(qp.parse({}).limit, 5)

    def test_sort(self):
        qp = QueryParser(QueryOptions(sort_fields=['name'], default_sort=OrderedDict([('name', 1)])))

        # Default
        self.assertEqual(qp.parse({}).sort, OrderedDict([('name', 1)]))

        # Disallowed fields are dropped
        self.assertEqual(qp.parse({'sort': 'secret:desc,name:desc'}).sort, OrderedDict([('name', -1)]))
        self.assertEqual(qp.parse({'sort': 'secret:desc'}).sort, OrderedDict([('name', 1)]))

        # Baseline fields are always allowed
        self.assertEqual(qp.parse({'sort': 'createdAt:desc,updatedAt'}).sort,
                         OrderedDict([('createdAt', -1), ('updatedAt', 1)]))

        # Only an exact 'desc' is descending
        self.assertEqual(qp.parse({'sort': 'createdAt:DESC,updatedAt:down'}).sort,
                         OrderedDict([('createdAt', 1), ('updatedAt', 1)]))
        self.assertEqual(qp.parse({'sort': 'name: desc '}).sort, OrderedDict([('name', -1)]))

        # Object syntax
        self.assertEqual(qp.parse({'order[field]': 'name', 'order[direction]': 'desc'}).sort,
                         OrderedDict([('name', -1)]))
        self.assertEqual(qp.parse({'order[field]': 'secret', 'order[direction]': 'desc'}).sort,
                         OrderedDict([('name', 1)]))

        # The default sort is never shared between requests
        a, b = qp.parse({}), qp.parse({})
        a.sort['hacked'] = 1
        self.assertEqual(b.sort, OrderedDict([('name', 1)]))
        self.assertEqual(qp.parse({}).sort, OrderedDict([('name', 1)]))

    def test_search(self):
        qp = QueryParser(QueryOptions(search_fields=['name', 'email']))

        params = qp.parse({'search': 'john'})
        self.assertEqual(params.search, 'john')
        self.assertEqual(qp.build_query(params), {'$or': [
            {'name': {'$regex': 'john', '$options': 'i'}},
            {'email': {'$regex': 'john', '$options': 'i'}},
        ]})

        # `q`, and a subset of fields
        params = qp.parse({'q': 'john', 'searchFields': 'email,password'})
        self.assertEqual(params.search_fields, ['email'])
        self.assertEqual(qp.build_query(params), {'$or': [
            {'email': {'$regex': 'john', '$options': 'i'}},
        ]})

        # Invalid expressions are escaped
        params = qp.parse({'search': 'c++'})
        self.assertEqual(qp.build_query(params)['$or'][0], {'name': {'$regex': 'c\\+\\+', '$options': 'i'}})
        params = qp.parse({'search': 'a(b'})
        self.assertEqual(qp.build_query(params)['$or'][0], {'name': {'$regex': 'a\\(b', '$options': 'i'}})

        # Too long
        with self.assertRaises(ValueTooLongError):
            qp.parse({'search': 'a' * 10001})

    def test_build_query(self):
        qp = QueryParser(QueryOptions(filter_fields=['*']))
        params = qp.parse({'search': 'jo', 'age__gte': '18', 'filters[role]': 'admin'})
        self.assertEqual(qp.build_query(params), {
            '$or': [{'name': {'$regex': 'jo', '$options': 'i'}}],
            'age': {'$gte': 18},
            'role': 'admin',
        })

        # A new object every time
        query = qp.build_query(params)
        query['hacked'] = True
        self.assertNotIn('hacked', params.filters)
        self.assertNotIn('hacked', qp.build_query(params))

    def test_projection(self):
        qp = QueryParser(QueryOptions(include_fields=['name', 'email']))

        params = qp.parse({'include': 'name,password', 'exclude': 'tokens', 'lookup': 'author, comments'})
        self.assertEqual(params.include, ['name'])
        self.assertEqual(params.exclude, ['tokens'])
        self.assertEqual(params.lookup, ['author', 'comments'])
        self.assertEqual(qp.build_projection(params), {'name': 1, '_id': 1, 'tokens': 0})

        # Nothing
        params = qp.parse({})
        self.assertIsNone(params.include)
        self.assertIsNone(qp.build_projection(params))

        # Every field can be included when there's no allow-list
        params = QueryParser().parse({'include': 'password'})
        self.assertEqual(QueryParser().build_projection(params), {'password': 1, '_id': 1})

    def test_format(self):
        qp = QueryParser()
        self.assertEqual(qp.parse({'format': 'csv'}).format, 'csv')
        self.assertEqual(qp.parse({'format': 'xlsx'}).format, 'xlsx')
        self.assertIsNone(qp.parse({}).format)

        with self.assertLogs('mongopipe.query', level='WARNING'):
            self.assertIsNone(qp.parse({'format': 'pdf'}).format)

    def test_skip_query_parser(self):
        qp = QueryParser(QueryOptions(
            search_fields=['name'],
            skip_query_parser={'search': True, 'filters': True, 'sort': True,
                               'page': True, 'limit': True, 'format': True,
                               'include': True, 'exclude': True, 'lookup': True},
        ))
        params = qp.parse({
            'search': 'john', 'page': '3', 'limit': '50', 'sort': 'updatedAt',
            'age__gte': '18', 'tags__size_gt': '1', 'format': 'csv',
            'include': 'name', 'exclude': 'password', 'lookup': 'author',
        })
        self.assertEqual(params, QueryParams(
            page=1, limit=10,
            sort=OrderedDict([('createdAt', -1)]),
            filters={},
            array_size=ArraySizeResult(),
        ))
        self.assertEqual(qp.build_query(params), {})

        # Search terms that come from elsewhere are not applied either
        params.search = 'john'
        self.assertEqual(qp.build_query(params), {})

    def test_too_many_fields(self):
        qp = QueryParser(QueryOptions(max_query_fields=5))
        query = {'filters[f{}]'.format(i): str(i) for i in range(6)}

        with self.assertRaises(TooManyFieldsError):
            qp.parse(query)

        # Even when filters are not parsed at all
        qp = QueryParser(QueryOptions(max_query_fields=5, skip_query_parser={'filters': True}))
        with self.assertRaises(TooManyFieldsError):
            qp.parse(query)

        # The default limit
        with self.assertRaises(TooManyFieldsError) as e:
            QueryParser().parse({'k{}'.format(i): '' for i in range(101)})
        self.assertEqual(str(e.exception), 'Too many query fields: 101 (max: 100)')

    def test_idempotent(self):
        qp = QueryParser(QueryOptions(filter_fields=['role'], sort_fields=['name'], search_fields=['name']))
        query = {
            'page': '2', 'sort': 'name:desc', 'search': 'jo',
            'role': 'admin', 'createdAt__gte': '2024-01-15', 'tags__size_gt': '2',
        }
        self.assertEqual(qp.parse(query), qp.parse(query))
        self.assertEqual(qp.build_query(qp.parse(query)), qp.build_query(qp.parse(query)))

        self.assertEqual(qp.parse(query).filters['createdAt'], {'$gte': datetime(2024, 1, 15)})

    def test_allow_list(self):
        qp = QueryParser(QueryOptions(filter_fields=['role']))
        params = qp.parse({
            'filters[secret]': 'x',
            'secret': 'x',
            'secret__gt': '1',
            'secret__size_gt': '1',
            'role': 'admin',
        })
        self.assertEqual(params.filters, {'role': 'admin'})
        self.assertFalse(params.array_size.needs_pipeline)

    def test_default_allow_list(self):
        # Nothing configured: arbitrary fields can't be filtered by
        qp = QueryParser()
        params = qp.parse({
            'filters[secret]': 'x',
            'secret__ne': 'x',
            'filters[$where]': 'sleep(1000)',
            'tags__size_gt': '1',
            'deletedAt': '$exist:false',
        })
        self.assertEqual(params.filters, {'deletedAt': {'$exists': False}})
        self.assertFalse(params.array_size.needs_pipeline)

    def test_operator_fields(self):
        # A filter can't replace the search condition
        qp = QueryParser(QueryOptions(filter_fields=['*']))
        params = qp.parse({'search': 'jo', 'filters[$or]': 'x', '$where__ne': 'x'})
        self.assertEqual(params.filters, {})
        self.assertEqual(qp.build_query(params), {
            '$or': [{'name': {'$regex': 'jo', '$options': 'i'}}],
        })

    def test_settings(self):
        # Plain dicts work
        qp = QueryParser({'max_limit': 3})
        self.assertEqual(qp.handler_limit.max_limit, 3)

        # Every handler only gets its own settings
        qp = QueryParser(QueryOptions(search_fields=['title'], filter_fields=['a'], sort_fields=['b']))
        self.assertEqual(qp.handler_search.search_fields, ('title',))
        self.assertEqual(qp.handler_filter.filter_fields, ('a', 'createdAt', 'updatedAt', 'deletedAt'))
        self.assertEqual(qp.handler_sort.sort_fields, ('b', 'createdAt', 'updatedAt'))

        # Typos are reported
        with self.assertRaises(KeyError) as e:
            QueryParser({'filter_feilds': ['a'], 'max_limit': 1})
        self.assertIn('filter_feilds', str(e.exception))

    def test_query_options(self):
        # Only the given settings are stored
        self.assertEqual(QueryOptions(), {})
        self.assertEqual(QueryOptions(max_limit=5, filter_prefix='meta.'),
                         {'max_limit': 5, 'filter_prefix': 'meta.'})
