__all__ = ['DtPushJSONFormatter',
           'RuntimeContextFilter']

from ._logging import (
                       DtPushJSONFormatter,
                       RuntimeContextFilter,
)
