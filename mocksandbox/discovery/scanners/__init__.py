"""Built-in call-site scanners."""

from mocksandbox.discovery.scanners.axios import AxiosScanner
from mocksandbox.discovery.scanners.fetch import FetchScanner
from mocksandbox.discovery.scanners.graphql import GraphQLScanner

__all__ = ["FetchScanner", "AxiosScanner", "GraphQLScanner"]
