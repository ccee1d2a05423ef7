"""Custom signals for the purchases app.

Signals:
    transaction_settled: Sent after a settlement commits.
        Sender: The ``PurchaseTransaction`` class.
        Kwargs:
            transaction: The ``PurchaseTransaction`` that was recorded.
            settlement: The :class:`~django_clubtickets.purchases.services.checkout.Settlement`
                summary, including the QR tokens issued per ticket.
"""

from django.dispatch import Signal

transaction_settled = Signal()
