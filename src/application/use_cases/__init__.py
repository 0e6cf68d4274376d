"""Application use cases."""

from src.application.use_cases.process_invoices import (
    IncomingFile,
    ProcessInvoicesUseCase,
)

__all__ = [
    "IncomingFile",
    "ProcessInvoicesUseCase",
]
