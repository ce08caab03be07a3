"""Core computation: token estimation, ranking, freshness and compilation."""
