"""GitHub REST client used to gather repository context and open pull requests."""
from __future__ import annotations

import base64
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from src.core.config import settings
from src.core.exceptions import InvalidRequest

logger = logging.getLogger(__name__)

_REPO_URL = re.compile(r"github\.com[/:]([^/\s]+)/([^/\s#?]+)")

KEY_FILES = (
    "package.json",
    "pyproject.toml",
    "setup.py",
    "Cargo.toml",
    "go.mod",
    "requirements.txt",
    "README.md",
    "src/index.ts",
    "src/main.py",
    "main.go",
)
MAX_KEY_FILES = 5
MAX_FILE_CHARS = 3000
MAX_TREE_ENTRIES = 100


@dataclass(frozen=True)
class RepoRef:
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass
class RepoFile:
    path: str
    content: str


@dataclass
class RepoData:
    name: str
    owner: str
    description: Optional[str] = None
    language: Optional[str] = None
    default_branch: str = "main"
    files: List[RepoFile] = field(default_factory=list)
    tree: List[str] = field(default_factory=list)


def parse_repo_url(url: str) -> RepoRef:
    match = _REPO_URL.search(url or "")
    if not match:
        raise InvalidRequest("Invalid GitHub URL")
    repo = match.group(2)
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return RepoRef(owner=match.group(1), repo=repo)


class GitHubClient:
    """Thin async wrapper over the endpoints the generators need."""

    def __init__(self, token: Optional[str] = None, *, base_url: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        headers = {"Accept": "application/vnd.github+json", "User-Agent": settings.PROJECT_NAME}
        token = token or settings.GITHUB_TOKEN
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.GITHUB_API_URL,
            headers=headers,
            timeout=settings.GITHUB_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, **params: Any) -> Any:
        response = await self._client.get(path, params=params or None)
        response.raise_for_status()
        return response.json()

    async def fetch_file(self, ref: RepoRef, path: str) -> Optional[str]:
        response = await self._client.get(
            f"/repos/{ref.full_name}/contents/{path}",
            headers={"Accept": "application/vnd.github.raw"},
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.text

    async def fetch_tree(self, ref: RepoRef, branch: str = "HEAD") -> List[str]:
        data = await self._get_json(f"/repos/{ref.full_name}/git/trees/{branch}", recursive=1)
        blobs = [item["path"] for item in data.get("tree", []) if item.get("type") == "blob"]
        return blobs[:MAX_TREE_ENTRIES]

    async def fetch_repo_data(self, ref: RepoRef) -> RepoData:
        meta = await self._get_json(f"/repos/{ref.full_name}")
        branch = meta.get("default_branch") or "main"
        tree = await self.fetch_tree(ref, branch)

        files: List[RepoFile] = []
        for path in KEY_FILES:
            if path not in tree:
                continue
            content = await self.fetch_file(ref, path)
            if content:
                files.append(RepoFile(path=path, content=content[:MAX_FILE_CHARS]))
            if len(files) >= MAX_KEY_FILES:
                break

        return RepoData(
            name=meta.get("name") or ref.repo,
            owner=ref.owner,
            description=meta.get("description"),
            language=meta.get("language"),
            default_branch=branch,
            files=files,
            tree=tree[:50],
        )

    async def fetch_commits(self, ref: RepoRef, limit: int = 100) -> List[Dict[str, Any]]:
        data = await self._get_json(f"/repos/{ref.full_name}/commits", per_page=limit)
        return [
            {
                "sha": item["sha"][:7],
                "message": (item.get("commit") or {}).get("message", "").split("\n")[0],
                "date": ((item.get("commit") or {}).get("author") or {}).get("date"),
            }
            for item in data
        ]

    async def fetch_releases(self, ref: RepoRef, limit: int = 20) -> List[Dict[str, Any]]:
        data = await self._get_json(f"/repos/{ref.full_name}/releases", per_page=limit)
        return [
            {"tag": item.get("tag_name"), "name": item.get("name"), "date": item.get("published_at")}
            for item in data
        ]

    async def fetch_tags(self, ref: RepoRef, limit: int = 20) -> List[str]:
        data = await self._get_json(f"/repos/{ref.full_name}/tags", per_page=limit)
        return [item["name"] for item in data]

    async def fetch_user(self) -> Dict[str, Any]:
        """Return the profile of the token's owner."""

        return await self._get_json("/user")

    async def open_pull_request(
        self,
        ref: RepoRef,
        *,
        path: str,
        content: str,
        branch: str,
        title: str,
        body: str,
    ) -> Dict[str, Any]:
        """Commit ``content`` to ``path`` on a new branch and open a pull request."""

        meta = await self._get_json(f"/repos/{ref.full_name}")
        base = meta.get("default_branch") or "main"
        head = await self._get_json(f"/repos/{ref.full_name}/git/ref/heads/{base}")

        response = await self._client.post(
            f"/repos/{ref.full_name}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": head["object"]["sha"]},
        )
        response.raise_for_status()

        existing = await self._client.get(
            f"/repos/{ref.full_name}/contents/{path}", params={"ref": base}
        )
        payload: Dict[str, Any] = {
            "message": title,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if existing.status_code == 200:
            payload["sha"] = existing.json().get("sha")
        response = await self._client.put(f"/repos/{ref.full_name}/contents/{path}", json=payload)
        response.raise_for_status()

        response = await self._client.post(
            f"/repos/{ref.full_name}/pulls",
            json={"title": title, "body": body, "head": branch, "base": base},
        )
        response.raise_for_status()
        pull = response.json()
        logger.info("Opened pull request %s on %s", pull.get("number"), ref.full_name)
        return {"url": pull.get("html_url"), "number": pull.get("number"), "branch": branch}
