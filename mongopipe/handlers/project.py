"""
### Projection

Projection corresponds to the `$project` stage of an aggregation pipeline:
selecting a subset of fields from a document.

* `include`: comma-separated list of fields to include. The `_id` is always included with them.
* `exclude`: comma-separated list of fields to exclude

```
GET /api/user?include=name,email
GET /api/user?exclude=password,tokens
```

When `include_fields` is configured, the API user can only include the listed fields;
the rest are silently dropped.

#### Lookups
`lookup` is a comma-separated list of related collections the API user would like to have joined in:

```
GET /api/article?lookup=author,comments
```

MongoPipe does not implement joins: the list is handed over to your custom pipeline stages,
which decide what to do with it.
"""

from .base import QueryHandlerBase

#: The identifier field that is always included
ID_FIELD = '_id'


class ProjectionHandler(QueryHandlerBase):
    """ Include, exclude, lookup

        Result: { name: 1, _id: 1, password: 0 }
    """

    query_section_name = 'project'

    def __init__(self, include_fields=None):
        """ Init projection

        :param include_fields: Fields the API user can include. Empty: every field
        """
        super(ProjectionHandler, self).__init__()

        # Config
        self.include_fields = tuple(include_fields or ())

    def parse(self, query):
        """ Get (include, exclude, lookup) field lists

        :rtype: tuple[list[str] | None, list[str] | None, list[str] | None]
        """
        return (
            self.parse_include(query),
            self.parse_comma_separated(query.get('exclude')),
            self.parse_comma_separated(query.get('lookup')),
        )

    def parse_include(self, query):
        include = self.parse_comma_separated(query.get('include'))
        if include is None:
            return None

        if self.include_fields:
            include = [f for f in include if f in self.include_fields]
        return include

    @staticmethod
    def compile_projection(include=None, exclude=None):
        """ Compile a $project spec

        :param include: Fields to include (1). Brings the `_id` along.
        :param exclude: Fields to exclude (0)
        :rtype: dict | None
        """
        projection = {}

        if include:
            projection.update(dict.fromkeys(include, 1))
            projection[ID_FIELD] = 1

        if exclude:
            projection.update(dict.fromkeys(exclude, 0))

        return projection or None

    def __repr__(self):
        return '{}(include_fields={!r})'.format(self.__class__.__name__, self.include_fields)
