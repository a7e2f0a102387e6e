"""
Authored dialogue content and its loader
"""

from .loader import DATA_DIR, load_graph_file, load_graphs, load_learning_objectives

__all__ = ["DATA_DIR", "load_graph_file", "load_graphs", "load_learning_objectives"]
