"""
claimdesk: console and client library for country, project, contractor and
claim records kept behind a REST API or in a local JSON cache
"""
__version__ = "0.1.0"
