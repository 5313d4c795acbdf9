"""Inbound webhook processing: route, authenticate, normalize, ingest."""

import logging
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from orderhub.core.config import settings
from orderhub.core.errors import BadPayload, InvalidState, NotFound, SignatureInvalid
from orderhub.services.aggregator_service import AggregatorService
from orderhub.services.delivery.base import parse_payload
from orderhub.services.delivery.registry import get_adapter
from orderhub.services.ingestion_service import IngestResult, OrderIngestionService

logger = logging.getLogger(__name__)


class WebhookProcessor:
    """Handles one webhook delivery from a delivery platform."""

    def __init__(self, db: Session, require_signature: Optional[bool] = None):
        self.db = db
        self.aggregators = AggregatorService(db)
        self.ingestion = OrderIngestionService(db)
        self.require_signature = (
            settings.webhook_require_signature if require_signature is None else require_signature
        )

    def process(self, platform: str, body: bytes, headers: Mapping[str, str]) -> IngestResult:
        """Process a raw webhook body.

        Raises:
            NotFound: unknown platform or no aggregator for the restaurant id.
            BadPayload: body is not a JSON object or not a usable order.
            SignatureInvalid: signature header missing or wrong.
            InvalidState: the aggregator is disabled.
        """
        adapter = get_adapter(platform)
        payload, text = parse_payload(body)

        restaurant_id = adapter.restaurant_id(payload)
        if not restaurant_id:
            raise BadPayload("Missing restaurant ID", platform=adapter.platform_name)

        aggregator = self.aggregators.find_for_webhook(adapter.platform_name, restaurant_id)
        if aggregator is None:
            raise NotFound("Aggregator", restaurant_id)

        signature = headers.get(adapter.signature_header)
        if self.require_signature:
            if not adapter.verify_signature(body, signature, aggregator.webhook_secret):
                logger.warning(
                    f"Rejected {adapter.platform_name} webhook for aggregator {aggregator.id}: "
                    f"{'missing' if not signature else 'invalid'} signature"
                )
                raise SignatureInvalid(adapter.platform_name)
        elif not signature:
            logger.debug(f"Unsigned {adapter.platform_name} webhook accepted (verification disabled)")

        if not aggregator.is_enabled:
            raise InvalidState(f"Aggregator {aggregator.id} ({aggregator.platform}) is disabled")

        incoming = adapter.normalize_payload(payload, text)
        return self.ingestion.ingest(aggregator, incoming)
