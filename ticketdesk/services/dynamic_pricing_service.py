"""
Dynamic pricing policies attached to ticket types.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from ..models.ticket_type import TicketType
from ..utils.clock import parse_datetime, utc_now

logger = logging.getLogger(__name__)

EARLY_BIRD = "early_bird"


class DynamicPricingService:
    """Resolves the unit price charged for a ticket type at booking time."""

    def effective_unit_price(self, ticket_type: TicketType, now: Optional[datetime] = None) -> Decimal:
        """
        Get the unit price a booking made at ``now`` is charged.

        Early-bird policy: while the window is open the stored ``price`` is
        taken as the discounted price; once ``endDate`` has passed the
        policy's ``originalPrice`` applies. Other policy types are ignored.

        Args:
            ticket_type: Ticket type being booked
            now: Evaluation time, defaults to the current UTC time

        Returns:
            Unit price as a Decimal
        """
        now = now or utc_now()
        price = Decimal(ticket_type.price)
        policy = ticket_type.dynamic_pricing

        if not policy or policy.get("type") != EARLY_BIRD:
            return price

        end_date = self._policy_value(policy, "endDate", "end_date")
        if end_date is None:
            return price

        try:
            window_end = parse_datetime(end_date)
        except (TypeError, ValueError):
            logger.warning(
                f"Ignoring early-bird policy with unparseable end date on ticket type {ticket_type.id}"
            )
            return price

        if window_end > now:
            return price

        original_price = self._policy_value(policy, "originalPrice", "original_price")
        if original_price is None:
            return price
        return Decimal(str(original_price))

    def total_price(self, ticket_type: TicketType, quantity: int, now: Optional[datetime] = None) -> Decimal:
        """Effective unit price times quantity."""
        return self.effective_unit_price(ticket_type, now) * quantity

    @staticmethod
    def _policy_value(policy: Dict[str, Any], *keys: str) -> Any:
        for key in keys:
            if policy.get(key) is not None:
                return policy[key]
        return None
