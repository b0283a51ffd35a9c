from sitepress.lib.errors import Result, SitepressError
from sitepress.lib.hooks import hooks, action, filter

__all__ = [
    "Result",
    "SitepressError",
    "hooks",
    "action",
    "filter",
]
