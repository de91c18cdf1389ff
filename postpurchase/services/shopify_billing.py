"""
Shopify Billing client.

Merchants pay for PostPurchase Pro plans through Shopify app subscriptions,
managed over the Admin GraphQL API:
https://shopify.dev/docs/apps/launch/billing
"""
import logging
import requests
from typing import Optional, Dict, Any, List

from ..utils.exceptions import ExternalServiceError, ExternalServiceTimeout

logger = logging.getLogger(__name__)


CREATE_SUBSCRIPTION = """
mutation appSubscriptionCreate($name: String!, $lineItems: [AppSubscriptionLineItemInput!]!, $returnUrl: URL!, $test: Boolean, $trialDays: Int) {
  appSubscriptionCreate(name: $name, returnUrl: $returnUrl, trialDays: $trialDays, lineItems: $lineItems, test: $test) {
    appSubscription { id name status }
    confirmationUrl
    userErrors { field message }
  }
}
"""

ACTIVE_SUBSCRIPTIONS = """
{
  currentAppInstallation {
    activeSubscriptions {
      id name status test trialDays currentPeriodEnd createdAt
      lineItems {
        plan {
          pricingDetails {
            ... on AppRecurringPricing { price { amount currencyCode } interval }
          }
        }
      }
    }
  }
}
"""

CANCEL_SUBSCRIPTION = """
mutation appSubscriptionCancel($id: ID!) {
  appSubscriptionCancel(id: $id) {
    appSubscription { id status }
    userErrors { field message }
  }
}
"""


class ShopifyBillingService:
    """
    Talks to the Billing API on behalf of one shop.

    Every request is bounded by ``timeout``. A timeout raises
    ExternalServiceTimeout; any other transport or GraphQL failure raises
    ExternalServiceError. When Shopify refuses the mutation itself
    (``userErrors``), the error is flagged ``rejected`` and carries the
    individual messages.
    """

    DEFAULT_API_VERSION = '2024-10'
    DEFAULT_TIMEOUT = 10.0

    def __init__(self, shop_domain: str, access_token: str,
                 api_version: str = None, timeout: float = None, test: bool = True):
        self.shop_domain = shop_domain
        self.api_version = api_version or self.DEFAULT_API_VERSION
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        # Development stores cannot be charged for real
        self.test = test
        self.endpoint = f"https://{shop_domain}/admin/api/{self.api_version}/graphql.json"
        self._auth_headers = {
            'Content-Type': 'application/json',
            'X-Shopify-Access-Token': access_token,
        }

    @classmethod
    def from_config(cls, shop_domain: str, access_token: str, config) -> 'ShopifyBillingService':
        return cls(
            shop_domain,
            access_token,
            api_version=config.get('SHOPIFY_API_VERSION'),
            timeout=config.get('BILLING_API_TIMEOUT'),
            test=config.get('SHOPIFY_BILLING_TEST', True),
        )

    def _post(self, document: str, variables: Optional[Dict] = None) -> Dict:
        body = {'query': document}
        if variables:
            body['variables'] = variables

        try:
            response = requests.post(self.endpoint, json=body, headers=self._auth_headers, timeout=self.timeout)
            response.raise_for_status()
            decoded = response.json()
        except requests.Timeout as e:
            logger.warning(f"Shopify Billing timed out for {self.shop_domain} after {self.timeout}s")
            raise ExternalServiceTimeout('Shopify Billing API timed out', original_error=e)
        except requests.RequestException as e:
            logger.error(f"Shopify Billing request failed for {self.shop_domain}: {e}")
            raise ExternalServiceError('Shopify Billing API request failed', original_error=e)
        except ValueError as e:
            raise ExternalServiceError('Shopify Billing API returned invalid JSON', original_error=e)

        if decoded.get('errors'):
            raise ExternalServiceError(f"GraphQL errors: {decoded['errors']}")
        return decoded.get('data') or {}

    @staticmethod
    def _check_user_errors(payload: Dict, what: str) -> None:
        problems = payload.get('userErrors') or []
        if not problems:
            return
        summary = '; '.join(p.get('message', '') for p in problems)
        raise ExternalServiceError(f"{what} failed: {summary}", rejected=True, user_errors=problems)

    def create_subscription(self, plan_name: str, price: float, return_url: str,
                            trial_days: int = 0, interval: str = 'EVERY_30_DAYS') -> Dict[str, Any]:
        """
        Request a recurring charge for ``plan_name``.

        The charge stays pending until the merchant approves it at
        ``confirmation_url``; Shopify then sends them to ``return_url``.
        """
        line_item = {
            'plan': {
                'appRecurringPricingDetails': {
                    'price': {'amount': str(price), 'currencyCode': 'USD'},
                    'interval': interval,
                }
            }
        }
        data = self._post(CREATE_SUBSCRIPTION, {
            'name': plan_name,
            'returnUrl': return_url,
            'trialDays': trial_days,
            'test': self.test,
            'lineItems': [line_item],
        })
        created = data.get('appSubscriptionCreate') or {}
        self._check_user_errors(created, 'Subscription creation')

        return {
            'subscription': created.get('appSubscription'),
            'confirmation_url': created.get('confirmationUrl'),
            'requires_approval': True,
        }

    def get_active_subscriptions(self) -> List[Dict]:
        """Subscriptions Shopify currently considers active for this installation."""
        data = self._post(ACTIVE_SUBSCRIPTIONS)
        return (data.get('currentAppInstallation') or {}).get('activeSubscriptions') or []

    def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]:
        data = self._post(CANCEL_SUBSCRIPTION, {'id': subscription_id})
        cancelled = data.get('appSubscriptionCancel') or {}
        self._check_user_errors(cancelled, 'Cancellation')

        logger.info(f"Cancelled Shopify subscription {subscription_id} for {self.shop_domain}")
        return cancelled.get('appSubscription')


def extract_price(external_subscription: Dict) -> Optional[float]:
    """Recurring price from an activeSubscriptions entry, if present."""
    for item in external_subscription.get('lineItems') or []:
        pricing = (item.get('plan') or {}).get('pricingDetails') or {}
        amount = (pricing.get('price') or {}).get('amount')
        if amount is None:
            continue
        try:
            return float(amount)
        except (TypeError, ValueError):
            return None
    return None
