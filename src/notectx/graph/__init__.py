"""Note graph: pages, blocks, references and the query interface."""

from notectx.graph.base import GraphSource
from notectx.graph.builder import GraphBuilder
from notectx.graph.models import Block, Page
from notectx.graph.query import GraphQuery

__all__ = ["Block", "GraphBuilder", "GraphQuery", "GraphSource", "Page"]
