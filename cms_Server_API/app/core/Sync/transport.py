# Sync/transport.py
# Atomic multi-file commit against a GitHub-style Git Data API.
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from .exceptions import TransportError
from .models import PendingSyncFile

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
BLOB_FILE_MODE = "100644"


class GitDataTransport:
    """
    Mirrors a batch of files onto a branch as one commit.

    The protocol is: resolve branch tip -> read its commit -> create one blob per file ->
    build a tree layered on the base tree -> create a commit parented on the tip ->
    move the branch ref without force. A concurrent push to the branch makes the final
    step fail, so the remote never shows a half-applied batch.
    """

    def __init__(self, token: str, repo: str, branch: str = "main", path_prefix: str = "data/admin",
                 base_url: str = GITHUB_API_URL, client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 30.0):
        if not token or not repo:
            raise ValueError("GitDataTransport requires both a token and an owner/name repository")
        self.repo = repo
        self.branch = branch
        self.path_prefix = path_prefix.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "Authorization": f"Bearer {token}",
        }
        logger.info(f"Git Data transport initialized for {self.repo}@{self.branch} ({self.path_prefix}/)")

    def remote_path(self, name: str) -> str:
        return f"{self.path_prefix}/{name}" if self.path_prefix else name

    async def _request(self, step: str, method: str, path: str,
                       payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=payload, headers=self._headers)
        except httpx.HTTPError as e:
            raise TransportError(f"Git Data API request failed: {e}", step=step) from e
        if response.is_error:
            detail = response.text.strip()
            message = f"Git Data API error ({response.status_code} {response.reason_phrase})"
            if detail:
                message = f"{message}: {detail}"
            raise TransportError(message, status_code=response.status_code, step=step)
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Git Data API returned invalid JSON: {e}", step=step) from e

    async def get_branch_tip(self) -> str:
        ref = await self._request("ref-read", "GET", f"/repos/{self.repo}/git/ref/heads/{self.branch}")
        return ref["object"]["sha"]

    async def get_commit(self, sha: str) -> Dict[str, Any]:
        return await self._request("commit-read", "GET", f"/repos/{self.repo}/git/commits/{sha}")

    async def create_blob(self, content: str) -> str:
        blob = await self._request("blob-create", "POST", f"/repos/{self.repo}/git/blobs",
                                   {"content": content, "encoding": "utf-8"})
        return blob["sha"]

    async def create_tree(self, base_tree: str, entries: List[Dict[str, str]]) -> str:
        tree = await self._request("tree-create", "POST", f"/repos/{self.repo}/git/trees",
                                   {"base_tree": base_tree, "tree": entries})
        return tree["sha"]

    async def create_commit(self, message: str, tree: str, parent: str) -> str:
        commit = await self._request("commit-create", "POST", f"/repos/{self.repo}/git/commits",
                                     {"message": message, "tree": tree, "parents": [parent]})
        return commit["sha"]

    async def update_ref(self, sha: str) -> None:
        await self._request("ref-update", "PATCH", f"/repos/{self.repo}/git/refs/heads/{self.branch}",
                            {"sha": sha, "force": False})

    async def commit_files(self, files: List[PendingSyncFile]) -> str:
        """Commits `files` onto the branch in one step. Returns the new commit sha."""
        tip = await self.get_branch_tip()
        base_commit = await self.get_commit(tip)

        entries = []
        for pending in files:
            blob_sha = await self.create_blob(pending.content)
            entries.append({
                "path": self.remote_path(pending.name),
                "mode": BLOB_FILE_MODE,
                "type": "blob",
                "sha": blob_sha,
            })

        tree_sha = await self.create_tree(base_commit["tree"]["sha"], entries)
        timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        commit_sha = await self.create_commit(f"chore(admin): update content {timestamp}", tree_sha, base_commit["sha"])
        await self.update_ref(commit_sha)
        logger.debug(f"Committed {len(files)} file(s) to {self.repo}@{self.branch}: {commit_sha}")
        return commit_sha

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
