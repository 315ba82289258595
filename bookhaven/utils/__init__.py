from bookhaven.utils.decorators import admin_required, owner_or_admin_required
from bookhaven.utils.email import (send_email, send_order_confirmation, send_order_status_update,
                                   send_welcome_email, send_subscription_confirmation)

__all__ = [
    'admin_required',
    'owner_or_admin_required',
    'send_email',
    'send_order_confirmation',
    'send_order_status_update',
    'send_welcome_email',
    'send_subscription_confirmation'
]
