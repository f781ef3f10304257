# Recalculate Ratings Management Command
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.db.models import Count, Sum

from core.models import Deal, DealFeedback, DealStatus, User


class Command(BaseCommand):
    help = (
        'Recomputes every user\'s rating_total, rating_count and completed_deals '
        'from feedback rows and completed deals. Each batch of users is locked '
        'while its aggregates are recomputed, so it is safe to run on a live site.'
    )

    fields = ['rating_total', 'rating_count', 'completed_deals']

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report differences without saving changes to the database.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Number of users locked and recomputed per transaction.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        if batch_size < 1:
            raise CommandError('--batch-size must be at least 1.')

        self.stdout.write('Recalculating user aggregates...')

        user_ids = list(User.objects.order_by('pk').values_list('pk', flat=True))
        changed = 0
        count = 0

        for start in range(0, len(user_ids), batch_size):
            batch = user_ids[start:start + batch_size]
            changed += self._recalculate_batch(batch, dry_run)

            for _ in batch:
                count += 1
                if count % 100 == 0:
                    self.stdout.write(f'Processed {count} users...')

        self.stdout.write(f'Processed {count} users total, {changed} out of date.')

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run completed. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS('Recalculation completed successfully.'))

    def _recalculate_batch(self, user_ids, dry_run):
        """
        Lock a batch of users, recompute their aggregates and save the ones
        that drifted. Feedback and deal completions for these users wait on
        the row locks, so the sums read here cannot go stale before the write.

        Returns:
            int: Number of users in the batch whose aggregates were wrong
        """
        with transaction.atomic():
            users = list(User.objects.select_for_update().filter(pk__in=user_ids).order_by('pk'))

            ratings = {
                row['reviewee']: (row['total'] or 0, row['count'])
                for row in DealFeedback.objects.filter(reviewee_id__in=user_ids)
                .values('reviewee')
                .annotate(total=Sum('rating'), count=Count('id'))
            }

            completed = {}
            completed_deals = Deal.objects.filter(status=DealStatus.COMPLETED)
            for key in ('request__buyer', 'offer__seller'):
                rows = completed_deals.filter(**{f'{key}__in': user_ids}).values(key).annotate(n=Count('id'))
                for row in rows:
                    completed[row[key]] = completed.get(row[key], 0) + row['n']

            updates = []
            for user in users:
                new_total, new_count = ratings.get(user.id, (0, 0))
                new_completed = completed.get(user.id, 0)

                if (user.rating_total, user.rating_count, user.completed_deals) == (new_total, new_count, new_completed):
                    continue

                if dry_run:
                    self.stdout.write(
                        f'  [DRY-RUN] User {user.id} ({user.email}): '
                        f'rating {user.rating_total}/{user.rating_count} -> {new_total}/{new_count}, '
                        f'completed deals {user.completed_deals} -> {new_completed}'
                    )
                user.rating_total = new_total
                user.rating_count = new_count
                user.completed_deals = new_completed
                updates.append(user)

            if updates and not dry_run:
                User.objects.bulk_update(updates, self.fields)

        return len(updates)
