from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from core.acceptance import accept_offer
from core.feedback import add_feedback
from core.lifecycle import confirm_delivery, mark_shipped, submit_payment
from core.models import DealFeedback, Offer, Request, User


class RecalculateRatingsCommandTests(TestCase):
    def setUp(self):
        self.buyer = User.objects.create_user(
            username='b1@test.com', email='b1@test.com', password='password', full_name='Buyer One'
        )
        self.seller = User.objects.create_user(
            username='s1@test.com', email='s1@test.com', password='password', full_name='Seller One'
        )
        self.bystander = User.objects.create_user(
            username='x@test.com', email='x@test.com', password='password'
        )

        for title, rating in (('Lamp', 5), ('Chair', 2)):
            lot = Request.objects.create(
                buyer=self.buyer,
                buyer_name='Buyer One',
                title=title,
                budget_amount=Decimal('50.00'),
            )
            offer = Offer.objects.create(
                request=lot,
                seller=self.seller,
                seller_name='Seller One',
                price_amount=Decimal('45.00'),
                currency_code='USD',
            )
            deal = accept_offer(offer.id, acting_user_id=self.buyer.id)
            mark_shipped(deal.id, self.seller.id)
            submit_payment(deal.id, self.buyer.id)
            confirm_delivery(deal.id, self.seller.id)
            add_feedback(deal.id, self.buyer.id, rating)

        # Corrupt aggregates
        User.objects.filter(pk=self.seller.pk).update(rating_total=0, rating_count=0, completed_deals=9)
        User.objects.filter(pk=self.bystander.pk).update(rating_total=12, rating_count=3)

    def test_recalculate_ratings(self):
        out = StringIO()
        call_command('recalculate_ratings', stdout=out)

        self.seller.refresh_from_db()
        self.buyer.refresh_from_db()
        self.bystander.refresh_from_db()

        self.assertEqual(self.seller.rating_total, 7)
        self.assertEqual(self.seller.rating_count, 2)
        self.assertEqual(self.seller.rating, Decimal('3.50'))
        self.assertEqual(self.seller.completed_deals, 2)

        self.assertEqual(self.buyer.completed_deals, 2)
        self.assertEqual(self.buyer.rating_count, 0)

        self.assertEqual(self.bystander.rating_total, 0)
        self.assertEqual(self.bystander.rating_count, 0)

        self.assertIn('Processed 3 users total, 2 out of date.', out.getvalue())
        self.assertIn('Recalculation completed successfully.', out.getvalue())

    def test_dry_run(self):
        out = StringIO()
        call_command('recalculate_ratings', '--dry-run', stdout=out)

        self.seller.refresh_from_db()
        self.assertEqual(self.seller.rating_count, 0)
        self.assertEqual(self.seller.completed_deals, 9)

        output = out.getvalue()
        self.assertIn(f'[DRY-RUN] User {self.seller.id}', output)
        self.assertIn(f'[DRY-RUN] User {self.bystander.id}', output)
        self.assertNotIn(f'[DRY-RUN] User {self.buyer.id}', output)
        self.assertIn('Dry run completed. No changes saved.', output)

    def test_small_batches(self):
        call_command('recalculate_ratings', '--batch-size', '1', stdout=StringIO())

        self.seller.refresh_from_db()
        self.assertEqual(self.seller.rating_total, 7)
        self.assertEqual(self.seller.completed_deals, 2)

    def test_invalid_batch_size(self):
        with self.assertRaises(CommandError):
            call_command('recalculate_ratings', '--batch-size', '0', stdout=StringIO())

    def test_each_batch_is_locked_while_recomputed(self):
        with mock.patch.object(
            User.objects, 'select_for_update', wraps=User.objects.select_for_update
        ) as lock:
            call_command('recalculate_ratings', '--batch-size', '2', stdout=StringIO())

        self.assertEqual(lock.call_count, 2)

        self.seller.refresh_from_db()
        self.bystander.refresh_from_db()
        self.assertEqual(self.seller.rating_total, 7)
        self.assertEqual(self.bystander.rating_count, 0)

    def test_feedback_changed_after_start_is_not_overwritten(self):
        # The buyer's batch runs first; the seller's rating is revised before the seller's batch.
        real_lock = User.objects.select_for_update
        calls = []

        def revise_then_lock():
            calls.append(1)
            if len(calls) == 2:
                DealFeedback.objects.filter(reviewee=self.seller, rating=2).update(rating=4)
            return real_lock()

        with mock.patch.object(User.objects, 'select_for_update', side_effect=revise_then_lock):
            call_command('recalculate_ratings', '--batch-size', '1', stdout=StringIO())

        self.seller.refresh_from_db()
        self.assertEqual(self.seller.rating_total, 9)
        self.assertEqual(self.seller.rating_count, 2)
