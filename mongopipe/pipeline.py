"""
### Pipelines

A QueryParser only compiles conditions. `PipelineBuilder` assembles them into a complete aggregation pipeline:

```
$match -> custom stages -> $project -> array size stages -> $facet { data: [$sort, $skip, $limit], totalCount }
```

This is where business rules are mixed in:

* `soft_delete`: documents with a `deletedAt` are hidden, unless the API user filters by `deletedAt` explicitly
* `force_filter`: a condition that is always applied: e.g. access control. A dict, or a callable(context)
* `transform_query`: a callable(query, context, params) that gets the last word on the `$match` condition
* `pipeline`: custom stages (e.g. `$lookup`s), placed right after the `$match`.
    A list, or a callable(query, context, params) that returns one.

`CountingAggregation` runs the pipeline, and gets both the page of results and the total count
with a single database roundtrip:

```python
builder = PipelineBuilder(user_query, soft_delete=True)
params = builder.parse(request.args)

result = CountingAggregation(db.users, builder.build(params))
return result.page(params)
```
"""

import logging
import math

from .params import QueryParams

logger = logging.getLogger(__name__)

#: The field that marks a document as deleted
SOFT_DELETE_FIELD = 'deletedAt'


class PipelineBuilder(object):
    """ Build aggregation pipelines from QueryParams """

    def __init__(self, query_parser, soft_delete=False, force_filter=None, transform_query=None, pipeline=None):
        """ Init a pipeline builder

        :param query_parser: The parser for this resource type
        :type query_parser: mongopipe.QueryParser
        :param soft_delete: Hide documents that have `deletedAt`
        :param force_filter: A condition to AND with every query: dict, or callable(context) -> dict
        :param transform_query: callable(query, context, params) -> query. Applied last.
        :param pipeline: Custom stages that follow the $match: list, or callable(query, context, params) -> list
        """
        self.query_parser = query_parser
        self.soft_delete = soft_delete
        self.force_filter = force_filter
        self.transform_query = transform_query
        self.pipeline = pipeline

    def parse(self, raw_query):
        """ Parse a raw query

        :rtype: QueryParams
        """
        return self.query_parser.parse(raw_query)

    def build_match(self, params, context=None):
        """ Build the $match condition

        :type params: QueryParams
        :param context: Anything that your callables need: e.g. the current user
        :rtype: dict
        """
        query = self.query_parser.build_query(params)

        if self.soft_delete and SOFT_DELETE_FIELD not in query:
            query[SOFT_DELETE_FIELD] = {'$exists': False}

        if self.force_filter is not None:
            force_filter = self.force_filter(context) if callable(self.force_filter) else self.force_filter
            query = and_conditions(query, force_filter)

        if self.transform_query is not None:
            query = self.transform_query(query, context, params)

        return query

    def get_custom_stages(self, query, context, params):
        """ Get the custom stages for this query """
        if self.pipeline is None:
            return []
        if callable(self.pipeline):
            return list(self.pipeline(query, context, params) or [])
        return list(self.pipeline)

    def build_stages(self, params, context=None, custom_stages=None):
        """ Build the stages that select documents: everything but sorting and pagination

        :type params: QueryParams
        :param custom_stages: Stages to use instead of the configured `pipeline`
        :rtype: list[dict]
        """
        query = self.build_match(params, context)
        if custom_stages is None:
            custom_stages = self.get_custom_stages(query, context, params)

        stages = []
        if not self.query_parser.skips('query'):
            stages.append({'$match': query})
        stages.extend(custom_stages)

        projection = self.query_parser.build_projection(params)
        if projection:
            stages.append({'$project': projection})

        if params.array_size.needs_pipeline:
            stages.extend(params.array_size.pipeline)

        return stages

    def build(self, params, context=None, custom_stages=None):
        """ Build a pipeline that loads one page of results, and counts all of them

        The result is a single document: { data: [...], totalCount: [{ total: N }] }

        :type params: QueryParams
        :rtype: list[dict]
        """
        pipeline = self.build_stages(params, context, custom_stages)
        pipeline.append({
            '$facet': {
                'data': [
                    {'$sort': dict(params.sort)},
                    {'$skip': params.skip},
                    {'$limit': params.limit},
                ],
                'totalCount': [
                    {'$count': 'total'},
                ],
            }
        })
        logger.debug('Pipeline: %r', pipeline)
        return pipeline

    def build_data(self, params, context=None, custom_stages=None, skip_sort=False):
        """ Build a pipeline that loads every matching document, without pagination. Used for exports.

        :type params: QueryParams
        :param skip_sort: Leave the documents unsorted
        :rtype: list[dict]
        """
        pipeline = self.build_stages(params, context, custom_stages)
        if not skip_sort:
            pipeline.append({'$sort': dict(params.sort)})
        logger.debug('Data pipeline: %r', pipeline)
        return pipeline

    def __repr__(self):
        return '{}({!r}, soft_delete={!r})'.format(self.__class__.__name__, self.query_parser, self.soft_delete)


def and_conditions(query, condition):
    """ Combine two conditions with AND

        Conditions on different fields are just merged; otherwise, `$and` is used
    """
    if not condition:
        return query
    if not query:
        return dict(condition)
    if set(query).isdisjoint(condition):
        return {**query, **condition}
    return {'$and': [query, dict(condition)]}


class CountingAggregation:
    """ Run a `PipelineBuilder.build()` pipeline, get both the results and the total count

        The pipeline is executed lazily, once, when either of the properties is accessed.

        Example:

            ```python
            ca = CountingAggregation(db.users, builder.build(params), session=ssn)

            ca.count  # -> 127
            ca.data  # -> [...]

            # (!) only one aggregation was made
            ```
    """
    __slots__ = ('_collection', '_pipeline', '_session',
                 '_data', '_count')

    def __init__(self, collection, pipeline, session=None):
        """ Prepare the aggregation

        :param collection: pymongo Collection
        :type collection: pymongo.collection.Collection
        :param pipeline: A pipeline that ends with the `$facet` stage from PipelineBuilder.build()
        :param session: A ClientSession. Passed through to aggregate() as is.
        """
        self._collection = collection
        self._pipeline = pipeline
        self._session = session

        # The results ; `None` if the pipeline has not yet been executed
        self._data = None
        self._count = None

    @property
    def data(self):
        """ Get the page of documents

        :rtype: list[dict]
        """
        self._execute()
        return self._data

    @property
    def count(self):
        """ Get the total number of matching documents

        :rtype: int
        """
        self._execute()
        return self._count

    def page(self, params: QueryParams) -> dict:
        """ Get a paginated response

        :return: { data, total, page, limit, totalPages, hasNext, hasPrev }
        """
        total = self.count
        total_pages = math.ceil(total / params.limit)
        return {
            'data': self.data,
            'total': total,
            'page': params.page,
            'limit': params.limit,
            'totalPages': total_pages,
            'hasNext': params.page < total_pages,
            'hasPrev': params.page > 1,
        }

    def _execute(self):
        if self._data is not None:
            return

        kwargs = {}
        if self._session is not None:
            kwargs['session'] = self._session

        results = list(self._collection.aggregate(self._pipeline, **kwargs))
        result = results[0] if results else {}

        total_count = result.get('totalCount') or [{}]
        self._count = total_count[0].get('total', 0)
        self._data = result.get('data') or []

    def __repr__(self):
        return '{}({!r})'.format(self.__class__.__name__, self._pipeline)
