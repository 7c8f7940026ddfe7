"""Remote package — content API client & recursive tree fetch.

Import from the submodules directly::

    from docmirror.remote.client import NotionClient
    from docmirror.remote.fetcher import RecursiveFetcher
"""
