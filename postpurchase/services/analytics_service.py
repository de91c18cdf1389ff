"""
Offer analytics: funnel event recording, daily rollups and reporting.

Recording is two steps. The raw OfferEvent is committed first and is
never lost. The daily rollup is then incremented with a single SQL
``UPDATE ... SET col = col + n`` so concurrent writers cannot lose
counts. ``conversion_rate`` is recomputed afterwards from the stored
counters; that second step may briefly go stale under concurrent writers,
and ``repair_conversion_rates`` fixes any such rows offline.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict, Any, List

from sqlalchemy import and_, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import OfferEvent, DailyAnalytics, EventType
from ..utils.exceptions import ValidationError, PersistenceError, AnalyticsRecordingError
from .offer_service import OfferService
from .usage_gate import month_impressions

logger = logging.getLogger(__name__)

COUNTERS = ('impressions', 'views', 'conversions', 'declines')


def compute_conversion_rate(conversions: int, views: int, declines: int) -> float:
    """conversions / (views + declines + conversions) * 100, or 0 with no interactions."""
    total = (views or 0) + (declines or 0) + (conversions or 0)
    if total <= 0:
        return 0.0
    return (conversions or 0) / total * 100


def event_increments(event_type: str, revenue_amount: Decimal = Decimal('0')) -> Dict[str, Any]:
    """Counter deltas for one event. Unknown types change nothing."""
    if event_type == EventType.IMPRESSION:
        return {'impressions': 1}
    if event_type == EventType.VIEW:
        return {'views': 1}
    if event_type == EventType.ACCEPT:
        return {'conversions': 1, 'revenue': revenue_amount}
    if event_type == EventType.DECLINE:
        return {'declines': 1}
    return {}


def _to_decimal(value, field: str) -> Decimal:
    if value in (None, ''):
        return Decimal('0')
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f'{field} must be a number', field=field)
    if not amount.is_finite():
        raise ValidationError(f'{field} must be a number', field=field)
    return amount


def event_kwargs_from_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map a checkout/admin event payload (camelCase) to ``record_event`` kwargs."""
    return {
        'customer_id': data.get('customerId'),
        'order_id': data.get('orderId'),
        'product_id': data.get('productId'),
        'variant_id': data.get('variantId'),
        'revenue_amount': data.get('revenueAmount'),
        'discount_amount': data.get('discountAmount'),
        'session_id': data.get('sessionId'),
        'user_agent': data.get('userAgent'),
        'ip_address': data.get('ipAddress'),
        'referrer': data.get('referrer'),
        'event_data': data.get('eventData'),
    }


class AnalyticsService:
    """Analytics recording and reporting for one shop."""

    def __init__(self, shop_domain: str):
        self.shop_domain = shop_domain

    # ==================== Recording ====================

    def record_event(
        self,
        offer_id: str,
        event_type: str,
        customer_id: Optional[str] = None,
        order_id: Optional[str] = None,
        product_id: Optional[str] = None,
        variant_id: Optional[str] = None,
        revenue_amount=None,
        discount_amount=None,
        session_id: Optional[str] = None,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
        referrer: Optional[str] = None,
        event_data: Optional[Dict] = None,
        now: Optional[datetime] = None
    ) -> OfferEvent:
        """
        Store one funnel event and fold it into today's rollup.

        Offer existence is not checked here.

        Raises:
            ValidationError: missing offer id or event type, or bad amounts
            PersistenceError: the event itself could not be stored
            AnalyticsRecordingError: the event was stored but the rollup was not
        """
        if not offer_id:
            raise ValidationError('Offer id is required', field='offerId')
        if not event_type:
            raise ValidationError('Event type is required', field='eventType')

        now = now or datetime.utcnow()
        revenue = _to_decimal(revenue_amount, 'revenueAmount')
        discount = _to_decimal(discount_amount, 'discountAmount')

        event = OfferEvent(
            shop_domain=self.shop_domain,
            offer_id=offer_id,
            event_type=event_type,
            customer_id=str(customer_id) if customer_id is not None else None,
            order_id=str(order_id) if order_id is not None else None,
            product_id=str(product_id) if product_id is not None else None,
            variant_id=str(variant_id) if variant_id is not None else None,
            revenue_amount=revenue,
            discount_amount=discount,
            session_id=session_id,
            user_agent=user_agent,
            ip_address=ip_address,
            referrer=referrer,
            event_data=event_data,
            created_at=now,
        )

        try:
            db.session.add(event)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to store {event_type} event for {self.shop_domain}: {e}")
            raise PersistenceError('Failed to record event', original_error=e)

        try:
            self.upsert_daily(offer_id, event_type, revenue, now.date())
        except Exception as e:
            db.session.rollback()
            logger.exception(
                f"Event {event.id} stored but daily analytics update failed "
                f"(shop={self.shop_domain}, offer={offer_id}, type={event_type})"
            )
            raise AnalyticsRecordingError(
                'Event recorded but daily analytics update failed',
                event=event,
                original_error=e
            )

        return event

    def _row_filter(self, offer_id: str, day):
        return and_(
            DailyAnalytics.shop_domain == self.shop_domain,
            DailyAnalytics.offer_id == offer_id,
            DailyAnalytics.day == day,
        )

    def _increment(self, row_filter, deltas: Dict[str, Any]) -> int:
        """Atomic in-database increment. Returns the number of rows touched."""
        values = {
            getattr(DailyAnalytics, column): getattr(DailyAnalytics, column) + amount
            for column, amount in deltas.items()
        }
        values[DailyAnalytics.updated_at] = datetime.utcnow()
        result = db.session.execute(
            update(DailyAnalytics)
            .where(row_filter)
            .values(values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def upsert_daily(self, offer_id: str, event_type: str,
                     revenue_amount: Decimal, day) -> DailyAnalytics:
        """
        Increment (or create) the (shop, offer, day) rollup, then recompute
        its conversion rate from the stored counters.
        """
        deltas = event_increments(event_type, revenue_amount)
        row_filter = self._row_filter(offer_id, day)

        if deltas:
            touched = self._increment(row_filter, deltas)
        else:
            touched = DailyAnalytics.query.filter(row_filter).count()

        if not touched:
            initial = {column: 0 for column in COUNTERS}
            initial['revenue'] = Decimal('0')
            initial.update(deltas)
            db.session.add(DailyAnalytics(
                shop_domain=self.shop_domain,
                offer_id=offer_id,
                day=day,
                conversion_rate=0.0,
                **initial
            ))
            try:
                db.session.commit()
            except IntegrityError:
                # Another writer created the row first
                db.session.rollback()
                if deltas:
                    self._increment(row_filter, deltas)
        db.session.commit()

        row = DailyAnalytics.query.filter(row_filter).populate_existing().one()
        self.recompute(row)
        db.session.commit()
        return row

    @staticmethod
    def recompute(row: DailyAnalytics) -> bool:
        """Overwrite conversion_rate from counters. Returns True if it changed."""
        rate = compute_conversion_rate(row.conversions, row.views, row.declines)
        if row.conversion_rate is None or abs(row.conversion_rate - rate) > 1e-9:
            row.conversion_rate = rate
            return True
        return False

    # ==================== Maintenance ====================

    @staticmethod
    def repair_conversion_rates(shop_domain: Optional[str] = None, batch_size: int = 500) -> int:
        """
        Recompute every stored conversion_rate from its counters.

        Args:
            shop_domain: Limit to one shop (all shops when None)
            batch_size: Rows loaded per query

        Returns:
            Number of rows whose rate was corrected
        """
        query = DailyAnalytics.query.order_by(DailyAnalytics.id)
        if shop_domain:
            query = query.filter(DailyAnalytics.shop_domain == shop_domain)

        fixed = 0
        last_id = 0
        while True:
            rows = query.filter(DailyAnalytics.id > last_id).limit(batch_size).all()
            if not rows:
                break
            for row in rows:
                if AnalyticsService.recompute(row):
                    fixed += 1
            last_id = rows[-1].id
            db.session.commit()

        if fixed:
            logger.info(f"Repaired conversion_rate on {fixed} daily analytics rows")
        return fixed

    # ==================== Reporting ====================

    def get_dashboard_analytics(self, date_range: int = 30) -> Dict[str, Any]:
        """Totals over the last ``date_range`` days plus offer counts."""
        start_day = (datetime.utcnow() - timedelta(days=date_range)).date()

        totals = db.session.query(
            func.coalesce(func.sum(DailyAnalytics.impressions), 0),
            func.coalesce(func.sum(DailyAnalytics.views), 0),
            func.coalesce(func.sum(DailyAnalytics.conversions), 0),
            func.coalesce(func.sum(DailyAnalytics.declines), 0),
            func.coalesce(func.sum(DailyAnalytics.revenue), 0),
            func.avg(DailyAnalytics.conversion_rate),
        ).filter(
            DailyAnalytics.shop_domain == self.shop_domain,
            DailyAnalytics.day >= start_day,
        ).one()

        impressions, views, conversions, declines, revenue, avg_rate = totals

        offers = OfferService(self.shop_domain)
        return {
            'has_offers': offers.has_offers(),
            'total_offers': offers.count_offers(),
            'active_offers': offers.count_active_offers(),
            'total_revenue': float(revenue or 0),
            'conversion_rate': round(float(avg_rate or 0), 2),
            'impressions': int(impressions or 0),
            'views': int(views or 0),
            'conversions': int(conversions or 0),
            'declines': int(declines or 0),
            'date_range': date_range,
        }

    def get_offer_analytics(self, offer_id: str, date_range: int = 30) -> Dict[str, List[Dict]]:
        """Daily rows and raw events for one offer, newest first."""
        start = datetime.utcnow() - timedelta(days=date_range)

        rows = (
            DailyAnalytics.query
            .filter(
                DailyAnalytics.shop_domain == self.shop_domain,
                DailyAnalytics.offer_id == offer_id,
                DailyAnalytics.day >= start.date(),
            )
            .order_by(DailyAnalytics.day.desc())
            .all()
        )
        events = (
            OfferEvent.query
            .filter(
                OfferEvent.shop_domain == self.shop_domain,
                OfferEvent.offer_id == offer_id,
                OfferEvent.created_at >= start,
            )
            .order_by(OfferEvent.created_at.desc())
            .all()
        )

        return {
            'analytics': [r.to_dict() for r in rows],
            'events': [e.to_dict() for e in events],
        }

    def check_impression_limits(self, subscription, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Current-month impressions against the plan's monthly ceiling."""
        total = month_impressions(self.shop_domain, now)
        maximum = subscription.max_impressions_monthly
        return {
            'totalImpressions': total,
            'maxImpressions': maximum,
            'limitReached': total >= maximum,
            'remainingImpressions': max(0, maximum - total),
        }
