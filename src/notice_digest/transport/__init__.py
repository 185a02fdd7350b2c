"""Adapters for upstream feeds, publishing and delivery."""

from .http_source import TICKET_COLLECTION_KEYS, HttpMessageSource
from .link_resolver import HttpLinkResolver
from .publisher import FilesystemPublisher
from .readings import HttpReadingSource
from .smtp_client import SmtpClient, SmtpDigestDelivery, SmtpError

__all__ = [
    "FilesystemPublisher",
    "HttpLinkResolver",
    "HttpMessageSource",
    "HttpReadingSource",
    "SmtpClient",
    "SmtpDigestDelivery",
    "SmtpError",
    "TICKET_COLLECTION_KEYS",
]
