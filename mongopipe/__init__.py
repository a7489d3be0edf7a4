"""
MongoPipe turns HTTP query strings into MongoDB aggregation pipelines.

The main use case is a REST API for a list of documents:
every time the UI needs some *sorting*, *filtering*, *searching*, or *pagination*,
you won't have to write a single line of repetitive code!

The API user sends plain query string parameters:

```
GET /api/user?page=2&limit=20&sort=age:desc&search=john&age__gte=18&tags__size_gt=2
```

and MongoPipe gives you a validated, typed `QueryParams` object,
together with the `$match`, `$project`, `$sort`, `$skip`, `$limit` stages to run it with.

Field allow-lists, and limits on the size of the query, keep the API user within bounds.
"""

# Exceptions that are used here and there
from .exc import *

# Typed values: the API user only ever sends strings
from .values import ValueParser, parse_value

# Filter operators, and array size operators
from .operators import FilterOperatorHandler, FILTER_OPERATORS, ARRAY_SIZE_OPERATORS
from .array_size import ArraySizeHelper, ArraySizeResult

# The heart of MongoPipe are the handlers:
# that's where query string parameters are converted to MongoDB conditions!
from .handlers import *

# The parser itself, and its result
from .params import QueryParams, EXPORT_FORMATS
from .query import QueryParser

# Settings
from .util import QueryOptions, QuerySettingsHandler

# Pipelines
from .pipeline import PipelineBuilder, CountingAggregation
