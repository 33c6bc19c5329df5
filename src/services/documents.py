"""Document generation backed by GitHub content and the text-generation API."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

from src.core.exceptions import InvalidRequest
from src.core.plans import DocType
from src.services import prompts
from src.services.diagrams import (
    extract_mermaid,
    normalise_class_diagram,
    validate_class_diagram,
)
from src.services.github_service import GitHubClient, RepoRef, parse_repo_url
from src.services.openai_service import agenerate_text

logger = logging.getLogger(__name__)

TextGenerator = Callable[[str, Optional[str]], Awaitable[str]]

_SOURCE_SUFFIXES = (".py", ".ts", ".tsx", ".js", ".java", ".go", ".rs", ".kt", ".cs", ".rb")


@dataclass(frozen=True)
class GenerationRequest:
    doc_type: DocType
    repo_url: str
    file_path: Optional[str] = None
    license_id: str = "MIT"

    @property
    def target_ref(self) -> str:
        if self.file_path:
            return f"{self.repo_url}#{self.file_path}"
        return self.repo_url


class DocumentGenerator(Protocol):
    async def generate(self, request: GenerationRequest) -> str:
        ...


class RepositoryDocumentGenerator:
    """Fetches what each document type needs and asks the model to write it."""

    def __init__(
        self,
        github_factory: Callable[[], GitHubClient] = GitHubClient,
        text_generator: TextGenerator = agenerate_text,
    ) -> None:
        self.github_factory = github_factory
        self.text_generator = text_generator

    async def generate(self, request: GenerationRequest) -> str:
        ref = parse_repo_url(request.repo_url)
        if request.doc_type is DocType.COMMENTS and not request.file_path:
            raise InvalidRequest("file_path is required for comments")

        async with self.github_factory() as github:
            prompt = await self._build_prompt(github, ref, request)

        text = await self.text_generator(prompt, prompts.WRITER_INSTRUCTIONS)
        if request.doc_type is DocType.CLASS_DIAGRAM:
            return self._finish_diagram(text)
        return text.strip()

    async def _build_prompt(
        self, github: GitHubClient, ref: RepoRef, request: GenerationRequest
    ) -> str:
        doc_type = request.doc_type
        if doc_type is DocType.README:
            return prompts.readme_prompt(await github.fetch_repo_data(ref))
        if doc_type is DocType.CONTRIBUTING:
            return prompts.contributing_prompt(await github.fetch_repo_data(ref))
        if doc_type is DocType.CHANGELOG:
            commits, releases, tags = await asyncio.gather(
                github.fetch_commits(ref),
                github.fetch_releases(ref),
                github.fetch_tags(ref),
            )
            return prompts.changelog_prompt(ref.repo, commits, releases, tags)
        if doc_type is DocType.LICENSE:
            return prompts.license_prompt(ref.repo, ref.owner, request.license_id)
        if doc_type is DocType.CODE_OF_CONDUCT:
            return prompts.code_of_conduct_prompt(ref.repo, ref.owner)
        if doc_type is DocType.COMMENTS:
            source = await github.fetch_file(ref, request.file_path)
            if source is None:
                raise InvalidRequest("File not found in repository")
            return prompts.comments_prompt(request.file_path, source)

        repo = await github.fetch_repo_data(ref)
        sources = []
        for path in repo.tree:
            if path.endswith(_SOURCE_SUFFIXES) and len(sources) < 8:
                content = await github.fetch_file(ref, path)
                if content:
                    sources.append({"path": path, "content": content[:3000]})
        return prompts.class_diagram_prompt(repo, sources)

    @staticmethod
    def _finish_diagram(text: str) -> str:
        diagram = extract_mermaid(text)
        problems = validate_class_diagram(diagram)
        if problems:
            logger.warning("Class diagram needed fixes: %s", "; ".join(problems))
            diagram = normalise_class_diagram(diagram)
        return diagram
