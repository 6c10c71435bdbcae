"""Service abstractions for interacting with firewalld."""

from fwr.services.firewalld import FirewalldService
from fwr.services.reconciler import Reconciler

__all__ = [
    "FirewalldService",
    "Reconciler",
]
