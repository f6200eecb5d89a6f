from django.core.management.base import BaseCommand
from django.utils import timezone

from storefront import mercadopago as mp
from storefront.errors import PaymentVerificationFailed


class Command(BaseCommand):
    help = "Verify Mercado Pago payments by id and mark their sales as paid when approved."

    def add_arguments(self, parser):
        parser.add_argument("payment_ids", nargs="+", help="Mercado Pago payment ids")

    def handle(self, *args, **options):
        outcomes = {}
        for payment_id in options["payment_ids"]:
            try:
                payment = mp.get_payment(payment_id)
            except PaymentVerificationFailed as exc:
                self.stderr.write(f"{payment_id}: {exc.message}")
                outcomes["verification_failed"] = outcomes.get("verification_failed", 0) + 1
                continue
            if payment.get("status") == "approved":
                result = mp.apply_approved_payment(payment)
                outcome = result.outcome
            else:
                outcome = "not_approved"
            outcomes[outcome] = outcomes.get(outcome, 0) + 1
            self.stdout.write(f"{payment_id}: {payment.get('status')} -> {outcome}")
        summary = ", ".join(f"{k}:{v}" for k, v in outcomes.items()) or "none"
        self.stdout.write(f"[{timezone.now():%Y-%m-%d %H:%M:%S}] Payments verified: {summary}")
