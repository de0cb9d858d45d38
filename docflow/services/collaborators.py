"""HTTP clients for the services the workflow engine talks to.

Every call is a blocking request with an explicit timeout. Failures are
mapped onto :mod:`docflow.core.exceptions` so the orchestrator can decide
between rollback and best-effort handling without knowing about httpx.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from docflow.core.config import Settings, get_settings
from docflow.core.exceptions import CollaboratorError, NotFoundError

logger = logging.getLogger(__name__)


def _join(base: str, path: str) -> str:
    if not base.endswith("/"):
        base = f"{base}/"
    return f"{base}{path.lstrip('/')}"


class ServiceClient:
    """Thin JSON client bound to one upstream service."""

    def __init__(self, service: str, base_url: str, http: httpx.Client):
        self.service = service
        self.base_url = base_url
        self.http = http

    def url(self, path: str) -> str:
        return _join(self.base_url, path)

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """
        Send a request and return the 2xx response.

        Raises:
            CollaboratorError: On timeout, transport failure or non-2xx answer
        """
        url = self.url(path)
        try:
            response = self.http.request(method, url, json=json, headers=headers)
        except httpx.TimeoutException as e:
            logger.error("%s %s timed out: %s", method, url, e)
            raise CollaboratorError(
                f"{self.service} timed out", service=self.service, retryable=True
            ) from e
        except httpx.TransportError as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise CollaboratorError(
                f"{self.service} unreachable", service=self.service, retryable=True
            ) from e

        if not response.is_success:
            logger.error("%s %s answered %s", method, url, response.status_code)
            raise CollaboratorError(
                f"{self.service} answered {response.status_code}",
                service=self.service,
                upstream_status=response.status_code,
                retryable=response.status_code >= 500,
            )
        return response

    def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self.request(method, path, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise CollaboratorError(
                f"{self.service} returned a non-JSON body", service=self.service
            ) from e


class DocumentService:
    """Systems of record for accounts, CIFs and deposit accounts."""

    def __init__(self, clients: Dict[str, ServiceClient]):
        # keyed by the settings attribute naming the base URL
        self.clients = clients

    def _client(self, base: str) -> ServiceClient:
        try:
            return self.clients[base]
        except KeyError:
            raise CollaboratorError(
                f"No document service configured for {base}", service=base
            )

    def fetch(self, base: str, path: str) -> Dict[str, Any]:
        """
        Fetch a document body.

        Raises:
            NotFoundError: If the service does not know the document
            CollaboratorError: On any other failure
        """
        client = self._client(base)
        try:
            body = client.request_json("GET", path)
        except CollaboratorError as e:
            if e.upstream_status == 404:
                raise NotFoundError(f"Document not found at {client.url(path)}") from e
            raise
        if not body:
            raise NotFoundError(f"Document not found at {client.url(path)}")
        return body

    def update(self, base: str, path: str, payload: Dict[str, Any]) -> None:
        self._client(base).request("PUT", path, json=payload)


@dataclass
class ApproverGroup:
    """A group of approvers as known to the user-management service."""

    id: str
    name: str


class ApproverDirectory:
    """Resolves approver group ids to display names."""

    GROUP_ENDPOINT = "group/"

    def __init__(self, client: ServiceClient):
        self.client = client

    def get_group(self, group_id: str) -> ApproverGroup:
        body = self.client.request_json("GET", f"{self.GROUP_ENDPOINT}{group_id}")
        data = (body or {}).get("data") or {}
        name = data.get("name")
        if not name:
            raise CollaboratorError(
                f"Group {group_id} has no name", service=self.client.service
            )
        return ApproverGroup(id=str(data.get("_id") or group_id), name=name)


class CoreBankingExchange:
    """Exchange service fronting the core banking system."""

    PROVISIONAL_ACCOUNT_ENDPOINT = "misys-provisional-account-number"

    def __init__(self, client: ServiceClient, provisional: ServiceClient):
        self.client = client
        self.provisional = provisional

    def push(self, endpoint: str, payload: Dict[str, Any]) -> None:
        self.client.request("POST", endpoint, json=payload)

    def generate_account_number(self, headers: Dict[str, str]) -> str:
        body = self.provisional.request_json(
            "POST", self.PROVISIONAL_ACCOUNT_ENDPOINT, json={}, headers=headers
        )
        try:
            return str(body["data"]["ACCOUNTNO"])
        except (KeyError, TypeError) as e:
            raise CollaboratorError(
                "Provisional account number missing from response",
                service=self.provisional.service,
            ) from e


class HistoryService:
    """Central history/audit log."""

    def __init__(self, client: ServiceClient):
        self.client = client

    def record(
        self,
        entity: Dict[str, Any],
        entity_type: str,
        operation: str,
        actor: str,
    ) -> None:
        payload = {
            "entityObj": entity,
            "type": entity_type,
            "operation": operation,
            "userId": actor,
        }
        self.client.request("POST", "", json=payload)


class CommentService:
    """Comment and discrepancy log kept by the account service."""

    ENDPOINT = "wf-comment-discrepancy/"

    def __init__(self, client: ServiceClient):
        self.client = client

    def append(self, document_id: str, notes: Dict[str, Any]) -> None:
        self.client.request("POST", f"{self.ENDPOINT}{document_id}", json=notes)


@dataclass
class Collaborators:
    """Bundle of every outbound dependency of a workflow run."""

    documents: DocumentService
    directory: ApproverDirectory
    exchange: CoreBankingExchange
    history: HistoryService
    comments: CommentService

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        http: Optional[httpx.Client] = None,
    ) -> "Collaborators":
        """Build clients from configuration sharing one connection pool."""
        settings = settings or get_settings()
        http = http or httpx.Client(timeout=settings.collaborator_timeout)

        acc = ServiceClient("account-service", settings.acc_service_url, http)
        documents = DocumentService({
            "acc_service_url": acc,
            "dao_service_url": ServiceClient("dao-service", settings.dao_service_url, http),
            "rda_dao_service_url": ServiceClient("rda-dao-service", settings.rda_dao_service_url, http),
        })
        return cls(
            documents=documents,
            directory=ApproverDirectory(ServiceClient("um-service", settings.um_service_url, http)),
            exchange=CoreBankingExchange(
                ServiceClient("exchange-service", settings.exchange_service_url, http),
                ServiceClient("provisional-account-service", settings.provisional_account_base, http),
            ),
            history=HistoryService(ServiceClient("history-service", settings.history_service_url, http)),
            comments=CommentService(acc),
        )
