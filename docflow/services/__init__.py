"""Outbound services for docflow."""

from docflow.services.collaborators import (
    ApproverDirectory,
    Collaborators,
    CommentService,
    CoreBankingExchange,
    DocumentService,
    HistoryService,
)

__all__ = [
    "ApproverDirectory",
    "Collaborators",
    "CommentService",
    "CoreBankingExchange",
    "DocumentService",
    "HistoryService",
]
