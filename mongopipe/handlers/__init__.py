"""
A query string is a flat list of string parameters. MongoPipe reads it section by section,
and every section is handled by its own handler:

* `page`, `limit`: [Pagination](#pagination) paginates the results
* `sort`, `order[field]`, `order[direction]`: [Sort](#sort) determines the sorting of the results
* `search`, `q`, `searchFields`: [Search](#search) searches text in several fields
* `include`, `exclude`, `lookup`: [Projection](#projection) selects the fields to be loaded
* `filters[<field>]`, `<field>`, `<field>__<operator>`: [Filters](#filters) filter the results

An example query string is:

```
GET /api/user?page=2&limit=20&sort=age:desc&search=john&include=name,age&age__gte=18&filters[role]=admin
```

Detailed syntax for every section is provided in the relevant modules.
"""

from .base import QueryHandlerBase
from .filter import FilterParser, FilterParseResult, merge_filter
from .sort import SortHandler
from .limit import PaginationHandler
from .search import SearchHandler
from .project import ProjectionHandler

__all__ = (
    'QueryHandlerBase',
    'FilterParser', 'FilterParseResult', 'merge_filter',
    'SortHandler',
    'PaginationHandler',
    'SearchHandler',
    'ProjectionHandler',
)
