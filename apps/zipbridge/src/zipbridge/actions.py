"""Request/response message protocol between a front end and the GitHub layer."""

import logging
from typing import Annotated, Any, Callable

import httpx
from ghgit import GitHubClient, Repository
from pydantic import BaseModel, Field, ValidationError

from .config import Settings
from .credentials import TokenStore, validate_token_format, verify_token
from .errors import (
    BridgeError,
    CredentialError,
    InvalidRequestError,
    UnknownActionError,
    describe_error,
    is_auth_failure,
)
from .models import CommitRequest, LocalFile
from .publisher import Publisher
from .session import filter_repositories

logger = logging.getLogger(__name__)

ProgressListener = Callable[[dict[str, Any]], None]
ClientFactory = Callable[[str], GitHubClient]

NonEmpty = Annotated[str, Field(min_length=1)]


# ============ Request Models ============

class EmptyRequest(BaseModel):
    pass


class TokenRequest(BaseModel):
    token: NonEmpty


class RepositoryListRequest(TokenRequest):
    filter: str | None = None  # Case-insensitive match on name or description


class RepoRequest(TokenRequest):
    owner: NonEmpty
    repo: NonEmpty


class CreateRepositoryRequest(TokenRequest):
    name: NonEmpty
    description: str | None = None
    is_private: bool = False


class BranchRequest(RepoRequest):
    branch: NonEmpty


class TreeRequest(RepoRequest):
    sha: NonEmpty
    recursive: bool = True


class BlobRequest(RepoRequest):
    sha: NonEmpty


class CommitInfo(BaseModel):
    message: NonEmpty
    branch: NonEmpty
    clear_existing: bool = False


class UploadRequest(TokenRequest):
    repository: Repository
    files: list[LocalFile]
    commit_info: CommitInfo
    files_to_delete: list[str] = Field(default_factory=list)


# ============ Dispatcher ============

class ActionDispatcher:
    """
    Routes action messages to handlers.

    Every request is a dict with an "action" key plus the fields that action
    needs. Every response is {"ok": True, "payload": ...} or
    {"ok": False, "error": message, "kind": category}.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        token_store: TokenStore | None = None,
        client_factory: ClientFactory | None = None,
    ):
        self.settings = settings or Settings()
        self.token_store = token_store or TokenStore(self.settings.token_path)
        self.client_factory = client_factory or self._default_client

    def _default_client(self, token: str) -> GitHubClient:
        return GitHubClient(
            token=token,
            base_url=self.settings.api_url,
            timeout=self.settings.timeout,
            max_retries=self.settings.max_retries,
        )

    @property
    def actions(self) -> list[str]:
        return sorted(self.HANDLERS)

    def dispatch(self, request: dict[str, Any], on_progress: ProgressListener | None = None) -> dict[str, Any]:
        """Handle one message and return its result envelope."""
        action = request.get("action")
        logger.debug("Received action: %s", action)
        try:
            if action not in self.HANDLERS:
                raise UnknownActionError(action)
            model, method = self.HANDLERS[action]
            try:
                params = model(**{k: v for k, v in request.items() if k != "action"})
            except ValidationError as e:
                logger.debug("Invalid %s request: %s", action, e)
                raise InvalidRequestError() from e
            payload = getattr(self, method)(params, on_progress)
        except BridgeError as e:
            logger.warning("Action %s failed: %s", action, e.message)
            return {"ok": False, "error": e.message, "kind": e.kind}
        except httpx.HTTPError as e:
            if is_auth_failure(e):
                error = CredentialError()
                return {"ok": False, "error": error.message, "kind": error.kind}
            logger.error("Action %s failed: %s", action, describe_error(e))
            return {"ok": False, "error": describe_error(e), "kind": "api"}
        return {"ok": True, "payload": payload}

    # ============ Handlers ============

    def _get_stored_token(self, params: EmptyRequest, on_progress: ProgressListener | None) -> dict[str, Any]:
        return {"token": self.token_store.load()}

    def _store_token(self, params: TokenRequest, on_progress: ProgressListener | None) -> dict[str, Any]:
        self.token_store.save(validate_token_format(params.token))
        return {"stored": True}

    def _clear_stored_token(self, params: EmptyRequest, on_progress: ProgressListener | None) -> dict[str, Any]:
        return {"cleared": self.token_store.clear()}

    def _validate_token(self, params: TokenRequest, on_progress: ProgressListener | None) -> dict[str, Any]:
        token = validate_token_format(params.token)
        user = verify_token(self.client_factory(token))
        return {"valid": True, "username": user.login}

    def _list_repositories(
        self, params: RepositoryListRequest, on_progress: ProgressListener | None
    ) -> list[dict[str, Any]]:
        repos = filter_repositories(self.client_factory(params.token).list_repositories(), params.filter)
        return [repo.model_dump(mode="json") for repo in repos]

    def _list_branches(self, params: RepoRequest, on_progress: ProgressListener | None) -> list[str]:
        return self.client_factory(params.token).list_branches(params.owner, params.repo)

    def _create_repository(
        self, params: CreateRepositoryRequest, on_progress: ProgressListener | None
    ) -> dict[str, Any]:
        client = self.client_factory(params.token)
        repo = client.create_repository(params.name, params.description, params.is_private)
        return repo.model_dump(mode="json")

    def _get_branch_detail(self, params: BranchRequest, on_progress: ProgressListener | None) -> dict[str, Any]:
        client = self.client_factory(params.token)
        return client.get_branch(params.owner, params.repo, params.branch).model_dump(mode="json")

    def _get_tree(self, params: TreeRequest, on_progress: ProgressListener | None) -> dict[str, Any]:
        client = self.client_factory(params.token)
        tree = client.get_tree(params.owner, params.repo, params.sha, params.recursive)
        return tree.model_dump(mode="json")

    def _get_blob_content(self, params: BlobRequest, on_progress: ProgressListener | None) -> str:
        return self.client_factory(params.token).get_blob_content(params.owner, params.repo, params.sha)

    def _get_blob_content_raw(self, params: BlobRequest, on_progress: ProgressListener | None) -> str:
        return self.client_factory(params.token).get_blob_content_raw(params.owner, params.repo, params.sha)

    def _upload_files(self, params: UploadRequest, on_progress: ProgressListener | None) -> dict[str, Any]:
        message = params.commit_info.message.strip()
        if not message:
            raise InvalidRequestError("Please enter a commit message")
        to_push = {f.path for f in params.files}
        to_delete = set(params.files_to_delete)
        if to_push & to_delete:
            raise InvalidRequestError("A path cannot be both pushed and deleted")
        request = CommitRequest(
            message=message,
            target_branch=params.commit_info.branch,
            clear_existing=params.commit_info.clear_existing,
            files_to_push=to_push,
            files_to_delete=to_delete,
        )

        def on_step(step: str, fraction: float) -> None:
            if on_progress is not None:
                on_progress({"action": "upload_progress", "step": step, "progress": round(fraction * 100)})

        publisher = Publisher(self.client_factory(params.token))
        result = publisher.publish(
            params.repository.owner.login,
            params.repository.name,
            params.repository.default_branch,
            params.files,
            request,
            on_step=on_step,
            html_url=params.repository.html_url,
        )
        return result.model_dump(mode="json")

    HANDLERS: dict[str, tuple[type[BaseModel], str]] = {
        "get_stored_token": (EmptyRequest, "_get_stored_token"),
        "store_token": (TokenRequest, "_store_token"),
        "clear_stored_token": (EmptyRequest, "_clear_stored_token"),
        "validate_token": (TokenRequest, "_validate_token"),
        "list_repositories": (RepositoryListRequest, "_list_repositories"),
        "list_branches": (RepoRequest, "_list_branches"),
        "create_repository": (CreateRepositoryRequest, "_create_repository"),
        "get_branch_detail": (BranchRequest, "_get_branch_detail"),
        "get_tree": (TreeRequest, "_get_tree"),
        "get_blob_content": (BlobRequest, "_get_blob_content"),
        "get_blob_content_raw": (BlobRequest, "_get_blob_content_raw"),
        "upload_files": (UploadRequest, "_upload_files"),
    }
