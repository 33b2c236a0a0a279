"""
Nightly price resolution from overlapping pricing rules.

For a given date every active rule whose inclusive ``[start, end]`` range
contains it is a candidate. The narrowest rule wins; when two candidates
have the same span the one created last wins. Without candidates the room
type's base price applies with no stay constraints.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction

from core.exceptions import InvalidDateRange, ReadOnlyEntity, StayConstraintViolation
from .models import PricingRule, PricingTemplate

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def to_money(value):
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def rule_precedence(rule):
    """Sort key: narrowest span first, then newest first."""
    return (rule.span_days, -rule.created_at.timestamp(), -rule.pk)


class PricingResolver:

    def active_rules(self, room_type, start=None, end=None):
        qs = PricingRule.objects.filter(room_type=room_type, is_active=True)
        if start is not None:
            qs = qs.filter(end_date__gte=start)
        if end is not None:
            qs = qs.filter(start_date__lte=end)
        return list(qs)

    def resolve(self, room_type, day, rules=None):
        """
        Effective price and stay constraints for one night.

        ``rules`` lets callers resolve many nights against one fetch.
        """
        if rules is None:
            rules = self.active_rules(room_type, day, day)
        candidates = [r for r in rules if r.is_active and r.covers(day)]
        if not candidates:
            return {
                "date": day,
                "price": to_money(room_type.base_price),
                "min_stay": None,
                "max_stay": None,
                "rule": None,
            }
        winner = min(candidates, key=rule_precedence)
        return {
            "date": day,
            "price": to_money(winner.price_per_night),
            "min_stay": winner.min_stay,
            "max_stay": winner.max_stay,
            "rule": winner,
        }

    def resolve_range(self, room_type, date_range):
        rules = self.active_rules(room_type, date_range.start, date_range.last_night)
        return [self.resolve(room_type, day, rules) for day in date_range]

    def tax_rate(self, room_type):
        if room_type.tax_rate is not None:
            return Decimal(room_type.tax_rate)
        return Decimal(settings.RESERVATION_TAX_RATE)

    def quote(self, room_type, date_range, enforce_stay=True):
        """
        Price a stay night by night.

        Stay constraints come from the arrival night's resolution.
        """
        nights = self.resolve_range(room_type, date_range)
        arrival = nights[0]
        if enforce_stay:
            if arrival["min_stay"] and date_range.nights < arrival["min_stay"]:
                raise StayConstraintViolation(
                    f"Minimum stay from {date_range.start} is {arrival['min_stay']} nights.",
                    min_stay=arrival["min_stay"],
                )
            if arrival["max_stay"] and date_range.nights > arrival["max_stay"]:
                raise StayConstraintViolation(
                    f"Maximum stay from {date_range.start} is {arrival['max_stay']} nights.",
                    max_stay=arrival["max_stay"],
                )

        base_amount = to_money(sum((n["price"] for n in nights), Decimal("0")))
        taxes = to_money(base_amount * self.tax_rate(room_type))
        fees = Decimal("0.00")
        return {
            "nights": date_range.nights,
            "breakdown": [
                {
                    "date": n["date"].isoformat(),
                    "price": str(n["price"]),
                    "rule_id": n["rule"].pk if n["rule"] else None,
                }
                for n in nights
            ],
            "base_amount": base_amount,
            "taxes": taxes,
            "fees": fees,
            "total_amount": base_amount + taxes + fees,
            "currency": room_type.structure.default_currency,
        }

    def detect_conflicts(self, room_type):
        """
        Advisory scan: pairs of active rules that overlap with different prices.

        Booking is never blocked by a conflict; ``resolve`` still picks a winner.
        """
        rules = sorted(self.active_rules(room_type), key=lambda r: (r.start_date, r.pk))
        conflicts = []
        for i, a in enumerate(rules):
            for b in rules[i + 1:]:
                if b.start_date > a.end_date:
                    break
                if a.price_per_night == b.price_per_night:
                    continue
                winner = min((a, b), key=rule_precedence)
                conflicts.append({
                    "rule_ids": [a.pk, b.pk],
                    "overlap_start": max(a.start_date, b.start_date),
                    "overlap_end": min(a.end_date, b.end_date),
                    "prices": [str(a.price_per_night), str(b.price_per_night)],
                    "winning_rule_id": winner.pk,
                })
        if conflicts:
            logger.info(f"Room type {room_type.pk} has {len(conflicts)} overlapping pricing rule(s)")
        return conflicts

    # -------------------------------------------------------------------------
    # Rule writes
    # -------------------------------------------------------------------------
    def ensure_writable(self, room_type):
        if room_type.is_read_only:
            raise ReadOnlyEntity(
                f"Pricing of room type {room_type.pk} is synced from an external PMS and cannot be edited here."
            )

    def validate_range(self, start_date, end_date):
        if end_date < start_date:
            raise InvalidDateRange(
                f"end_date must be on or after start_date. start: {start_date}, end: {end_date}"
            )

    def create_rule(self, room_type, start_date, end_date, price_per_night, **extra):
        self.ensure_writable(room_type)
        self.validate_range(start_date, end_date)
        rule = PricingRule.objects.create(
            room_type=room_type,
            start_date=start_date,
            end_date=end_date,
            price_per_night=to_money(price_per_night),
            **extra,
        )
        logger.info(
            f"Pricing rule {rule.pk} for room type {room_type.pk}: "
            f"{start_date}→{end_date} at {rule.price_per_night}"
        )
        return rule

    def delete_rule(self, rule):
        self.ensure_writable(rule.room_type)
        pk = rule.pk
        rule.delete()
        logger.info(f"Pricing rule {pk} deleted")

    def template_price(self, template, base_price):
        base_price = Decimal(base_price)
        value = Decimal(template.adjustment_value)
        if template.adjustment_type == PricingTemplate.AdjustmentType.PERCENTAGE:
            price = base_price * (1 + value / 100)
        elif template.adjustment_type == PricingTemplate.AdjustmentType.FIXED:
            price = base_price + value
        else:
            price = base_price * value
        return to_money(price)

    def apply_template(self, template, room_type, start_date, end_date):
        if template.structure_id != room_type.structure_id:
            raise ValueError("Template and room type belong to different structures")
        with transaction.atomic():
            return self.create_rule(
                room_type,
                start_date,
                end_date,
                self.template_price(template, room_type.base_price),
                min_stay=template.min_stay,
                max_stay=template.max_stay,
                pricing_type=PricingRule.PricingType.TEMPLATE,
                template=template,
                color_code=template.color_code,
                notes=f"Applied template: {template.name}",
            )


resolver = PricingResolver()
