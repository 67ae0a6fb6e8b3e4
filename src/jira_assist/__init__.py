"""Jira issue client with story enhancement.

This package provides:
- A Jira Cloud REST client for credentials, projects, issue types,
  issue creation and comments
- An Ollama chat client for local text generation
- An enhancement orchestrator that rewrites raw issue text through the
  generation service, repairing loosely-structured responses and falling
  back to a deterministic user-story rewriter
- A FastAPI server and a command-line tool on top of both
"""

__version__ = "1.0.0"
