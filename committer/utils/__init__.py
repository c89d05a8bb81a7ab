"""Utility modules for the code agent."""

from committer.utils.file_classifier import classify_file, filter_files
from committer.utils.file_parser import ResolvedFile, parse_files, parse_files_lenient
from committer.utils.github_client import GitHubClient
from committer.utils.llm_client import LLMClient

__all__ = [
    "GitHubClient",
    "LLMClient",
    "ResolvedFile",
    "classify_file",
    "filter_files",
    "parse_files",
    "parse_files_lenient",
]
