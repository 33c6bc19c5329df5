"""Prompt templates for each document type."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List

from src.core.plans import DocType
from src.services.github_service import RepoData

WRITER_INSTRUCTIONS = (
    "You are a senior technical writer. Answer with the finished document only, "
    "in GitHub-flavoured Markdown, without preamble."
)

DOC_FILENAMES: Dict[DocType, str] = {
    DocType.README: "README.md",
    DocType.CHANGELOG: "CHANGELOG.md",
    DocType.CONTRIBUTING: "CONTRIBUTING.md",
    DocType.LICENSE: "LICENSE",
    DocType.CODE_OF_CONDUCT: "CODE_OF_CONDUCT.md",
    DocType.CLASS_DIAGRAM: "docs/class-diagram.md",
}


def _repo_context(repo: RepoData, tree_limit: int = 30) -> str:
    files = "\n\n".join(f"### {f.path}\n```\n{f.content}\n```" for f in repo.files)
    tree = "\n".join(repo.tree[:tree_limit])
    return (
        f"## Repository\n"
        f"- Name: {repo.name}\n"
        f"- Owner: {repo.owner}\n"
        f"- Description: {repo.description or 'Not provided'}\n"
        f"- Primary language: {repo.language or 'Unknown'}\n\n"
        f"## File structure\n{tree}\n\n"
        f"## Key files\n{files}"
    )


def readme_prompt(repo: RepoData) -> str:
    return (
        f"{_repo_context(repo)}\n\n"
        "Write a README with a one-sentence summary, features, installation, "
        "a usage example taken from the code above, and a license section."
    )


def contributing_prompt(repo: RepoData) -> str:
    return (
        f"{_repo_context(repo)}\n\n"
        "Write a CONTRIBUTING guide covering local setup for this stack, "
        "branch and commit conventions, running tests, and the pull request process."
    )


def changelog_prompt(
    name: str,
    commits: Iterable[Dict[str, Any]],
    releases: Iterable[Dict[str, Any]],
    tags: Iterable[str],
) -> str:
    commit_lines = "\n".join(f"- {c['sha']} {c['message']} ({c.get('date')})" for c in commits)
    release_lines = "\n".join(f"- {r['tag']}: {r.get('name') or ''} ({r.get('date')})" for r in releases)
    tag_lines = ", ".join(tags) or "none"
    return (
        f"Project: {name}\n\n## Releases\n{release_lines or 'none'}\n\n"
        f"## Tags\n{tag_lines}\n\n## Recent commits\n{commit_lines or 'none'}\n\n"
        "Write a CHANGELOG in Keep a Changelog format, grouping commits under "
        "Added, Changed, Fixed and Removed per release, newest first."
    )


def license_prompt(name: str, owner: str, license_id: str = "MIT") -> str:
    return (
        f"Write the full {license_id} license text for the project {name}, "
        f"copyright holder {owner}. Output only the license text."
    )


def code_of_conduct_prompt(name: str, owner: str) -> str:
    return (
        f"Write a CODE_OF_CONDUCT.md for {name} maintained by {owner}, based on the "
        "Contributor Covenant 2.1, with an enforcement section that points to the "
        "repository maintainers."
    )


def comments_prompt(path: str, source: str) -> str:
    return (
        f"Add concise doc comments to the following file ({path}) using the idiomatic "
        "comment style of its language. Do not change behaviour. Return the whole file "
        f"in a single fenced code block.\n\n```\n{source}\n```"
    )


def class_diagram_prompt(repo: RepoData, sources: List[Dict[str, str]]) -> str:
    blocks = "\n\n".join(f"### {s['path']}\n```\n{s['content']}\n```" for s in sources)
    return (
        f"{_repo_context(repo, tree_limit=50)}\n\n## Sources\n{blocks}\n\n"
        "Produce a Mermaid classDiagram of the main classes, their key members and "
        "relationships. Return only a ```mermaid fenced block that starts with classDiagram."
    )
