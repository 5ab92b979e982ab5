"""Bulk Buy bounded context — pooled purchase campaigns for street-food vendors.

Vendors in the same cluster pledge quantities toward a shared target. When the
target is met the whole campaign locks in the discounted bulk price and a
purchase order is placed for every contributor (CQRS).
"""

from protean.domain import Domain

from bulkbuy.utils.logging import configure_logging

# Configure logging for the application
configure_logging()

# Domain Composition Root
bulkbuy = Domain(name="bulkbuy")
