"""Orchestration of a hygiene analysis run."""

from .core import PullRequestAnalyzer

__all__ = ['PullRequestAnalyzer']
