import logging
import unittest
from unittest import mock

from mongopipe import QueryParser, QueryOptions, PipelineBuilder, CountingAggregation
from mongopipe.pipeline import and_conditions


class PipelineBuilderTest(unittest.TestCase):
    """ Test pipeline assembly """

    maxDiff = None

    @classmethod
    def setUpClass(cls):
        logging.basicConfig(level=logging.DEBUG)

    def setUp(self):
        self.qp = QueryParser(QueryOptions(
            filter_fields=['role', 'tags'],
            sort_fields=['name'],
            include_fields=['name', 'role'],
        ))

    def test_build(self):
        b = PipelineBuilder(self.qp)
        params = b.parse({
            'page': '3', 'limit': '20', 'sort': 'name',
            'role': 'admin', 'include': 'name', 'tags__size_gt': '2',
        })

        self.assertEqual(b.build(params), [
            {'$match': {'role': 'admin'}},
            {'$project': {'name': 1, '_id': 1}},
            {'$addFields': {'tagsCount': {'$size': {'$ifNull': ['$tags', []]}}}},
            {'$match': {'tagsCount': {'$gt': 2}}},
            {'$facet': {
                'data': [
                    {'$sort': {'name': 1}},
                    {'$skip': 40},
                    {'$limit': 20},
                ],
                'totalCount': [
                    {'$count': 'total'},
                ],
            }},
        ])

    def test_build_minimal(self):
        b = PipelineBuilder(self.qp)
        pipeline = b.build(b.parse({}))
        self.assertEqual(pipeline, [
            {'$match': {}},
            {'$facet': {
                'data': [{'$sort': {'createdAt': -1}}, {'$skip': 0}, {'$limit': 10}],
                'totalCount': [{'$count': 'total'}],
            }},
        ])

    def test_array_size_stages_order(self):
        b = PipelineBuilder(self.qp)
        stages = b.build_stages(b.parse({'tags__size_gt': '3'}))
        operators = [list(stage)[0] for stage in stages]
        self.assertEqual(operators, ['$match', '$addFields', '$match'])
        self.assertIn('tagsCount', stages[1]['$addFields'])
        self.assertIn('tagsCount', stages[2]['$match'])

    def test_soft_delete(self):
        b = PipelineBuilder(self.qp, soft_delete=True)

        # Deleted documents are hidden
        self.assertEqual(b.build_match(b.parse({'role': 'admin'})),
                         {'role': 'admin', 'deletedAt': {'$exists': False}})

        # ... unless the API user asks for them
        self.assertEqual(b.build_match(b.parse({'deletedAt': '$exist:true'})),
                         {'deletedAt': {'$exists': True}})

        # No soft delete
        b = PipelineBuilder(self.qp)
        self.assertEqual(b.build_match(b.parse({})), {})

    def test_force_filter(self):
        # A dict
        b = PipelineBuilder(self.qp, force_filter={'tenant': 't1'})
        self.assertEqual(b.build_match(b.parse({'role': 'admin'})), {'role': 'admin', 'tenant': 't1'})

        # Can't be overridden by the API user
        b = PipelineBuilder(self.qp, force_filter={'role': 'user'})
        self.assertEqual(b.build_match(b.parse({'role': 'admin'})),
                         {'$and': [{'role': 'admin'}, {'role': 'user'}]})

        # A callable
        b = PipelineBuilder(self.qp, force_filter=lambda context: {'ownerId': context['user_id']})
        self.assertEqual(b.build_match(b.parse({}), context={'user_id': 1}), {'ownerId': 1})

    def test_transform_query(self):
        calls = []

        def transform_query(query, context, params):
            calls.append((context, params.page))
            return {**query, 'visible': True}

        b = PipelineBuilder(self.qp, soft_delete=True, transform_query=transform_query)
        query = b.build_match(b.parse({'page': '2'}), context='ctx')
        self.assertEqual(query, {'deletedAt': {'$exists': False}, 'visible': True})
        self.assertEqual(calls, [('ctx', 2)])

    def test_custom_stages(self):
        lookup = {'$lookup': {'from': 'users', 'localField': 'authorId', 'foreignField': '_id', 'as': 'author'}}

        # A list
        b = PipelineBuilder(self.qp, pipeline=[lookup])
        stages = b.build_stages(b.parse({'role': 'admin', 'include': 'name'}))
        self.assertEqual(stages, [
            {'$match': {'role': 'admin'}},
            lookup,
            {'$project': {'name': 1, '_id': 1}},
        ])

        # A callable
        def pipeline(query, context, params):
            return [lookup] if params.lookup else []

        b = PipelineBuilder(self.qp, pipeline=pipeline)
        self.assertEqual(b.build_stages(b.parse({'lookup': 'author'})), [{'$match': {}}, lookup])
        self.assertEqual(b.build_stages(b.parse({})), [{'$match': {}}])

        # Stages given explicitly win
        self.assertEqual(b.build_stages(b.parse({'lookup': 'author'}), custom_stages=[]), [{'$match': {}}])

    def test_skip_match(self):
        qp = QueryParser(QueryOptions(skip_query_parser={'query': True}))
        b = PipelineBuilder(qp, pipeline=[{'$match': {'custom': True}}])
        self.assertEqual(b.build_stages(b.parse({'age__gt': '1'})), [{'$match': {'custom': True}}])

    def test_build_data(self):
        b = PipelineBuilder(self.qp)
        params = b.parse({'sort': 'name:desc', 'page': '5', 'role': 'admin'})

        self.assertEqual(b.build_data(params), [
            {'$match': {'role': 'admin'}},
            {'$sort': {'name': -1}},
        ])
        self.assertEqual(b.build_data(params, skip_sort=True), [
            {'$match': {'role': 'admin'}},
        ])

    def test_and_conditions(self):
        self.assertEqual(and_conditions({}, {'a': 1}), {'a': 1})
        self.assertEqual(and_conditions({'a': 1}, {}), {'a': 1})
        self.assertEqual(and_conditions({'a': 1}, None), {'a': 1})
        self.assertEqual(and_conditions({'a': 1}, {'b': 2}), {'a': 1, 'b': 2})
        self.assertEqual(and_conditions({'a': 1}, {'a': 2}), {'$and': [{'a': 1}, {'a': 2}]})


class CountingAggregationTest(unittest.TestCase):
    """ Test running pipelines """

    def _collection(self, results):
        collection = mock.Mock()
        collection.aggregate.return_value = iter(results)
        return collection

    def test_page(self):
        qp = QueryParser()
        params = qp.parse({'page': '2', 'limit': '10'})
        collection = self._collection([
            {'data': [{'_id': 11}, {'_id': 12}], 'totalCount': [{'total': 25}]},
        ])

        ca = CountingAggregation(collection, [{'$match': {}}])
        self.assertEqual(ca.page(params), {
            'data': [{'_id': 11}, {'_id': 12}],
            'total': 25,
            'page': 2,
            'limit': 10,
            'totalPages': 3,
            'hasNext': True,
            'hasPrev': True,
        })

        # Executed once
        self.assertEqual(ca.count, 25)
        self.assertEqual(ca.data, [{'_id': 11}, {'_id': 12}])
        collection.aggregate.assert_called_once_with([{'$match': {}}])

    def test_last_page(self):
        params = QueryParser().parse({'page': '3', 'limit': '10'})
        collection = self._collection([{'data': [{'_id': 21}], 'totalCount': [{'total': 21}]}])
        page = CountingAggregation(collection, []).page(params)
        self.assertEqual(page['totalPages'], 3)
        self.assertFalse(page['hasNext'])
        self.assertTrue(page['hasPrev'])

    def test_empty(self):
        params = QueryParser().parse({})

        # $count yields nothing when nothing matches
        collection = self._collection([{'data': [], 'totalCount': []}])
        self.assertEqual(CountingAggregation(collection, []).page(params), {
            'data': [], 'total': 0, 'page': 1, 'limit': 10,
            'totalPages': 0, 'hasNext': False, 'hasPrev': False,
        })

        # No results at all
        ca = CountingAggregation(self._collection([]), [])
        self.assertEqual(ca.count, 0)
        self.assertEqual(ca.data, [])

    def test_session(self):
        session = object()
        collection = self._collection([{'data': [], 'totalCount': []}])
        CountingAggregation(collection, [], session=session).count
        collection.aggregate.assert_called_once_with([], session=session)
