"""
siteserver

Static file server with canonical-host redirects, optional basic auth,
request statistics and a pull-build-restart deploy tool.
"""

__version__ = "1.0.0"
