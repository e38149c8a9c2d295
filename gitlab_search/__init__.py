"""
Search every repository of a GitLab group for literal strings.

The package is split the same way the rest of the tooling is:
* ``domain``   - pydantic models, exceptions and pure text helpers.
* ``services`` - GitLab API access, archive download, streaming extraction,
  line search, reporting and the scanner that ties them together.
* ``storage``  - the on-disk cache of the group's project list.
* ``core``     - configuration and logging setup.
"""

__version__ = "0.1.0"
