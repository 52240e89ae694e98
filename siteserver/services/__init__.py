# Services module
#
# Example:
#   from siteserver.services.statistics_service import RequestStatistics

from .statistics_service import RequestStatistics, StatEntry
from .static_service import CachedStaticFiles, StaticCacheLimits
