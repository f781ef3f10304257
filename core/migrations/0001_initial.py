import core.validators
import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, help_text='Required. Enter a valid email address.', max_length=254, unique=True, verbose_name='email address')),
                ('full_name', models.CharField(blank=True, default='', help_text='Name shown to other marketplace users.', max_length=200, verbose_name='full name')),
                ('avatar_url', models.CharField(blank=True, default='', help_text='Optional link to a profile picture.', max_length=500, validators=[core.validators.validate_external_url], verbose_name='avatar URL')),
                ('role', models.CharField(choices=[('buyer', 'Buyer'), ('seller', 'Seller'), ('both', 'Buyer and seller')], default='both', help_text='Whether the account buys, sells, or both.', max_length=10, verbose_name='role')),
                ('completed_deals', models.PositiveIntegerField(default=0, help_text='Deals completed as buyer or seller.', verbose_name='completed deals')),
                ('rating_total', models.PositiveIntegerField(default=0, help_text='Sum of all feedback ratings received.', verbose_name='rating total')),
                ('rating_count', models.PositiveIntegerField(default=0, help_text='Number of feedback ratings received.', verbose_name='rating count')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the account was created.', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the account was last updated.', verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['email'], name='user_email_idx')],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Request',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('buyer_name', models.CharField(max_length=200, verbose_name='buyer name')),
                ('buyer_avatar_url', models.CharField(blank=True, default='', max_length=500, validators=[core.validators.validate_external_url], verbose_name='buyer avatar URL')),
                ('buyer_rating', models.DecimalField(blank=True, decimal_places=2, help_text='Buyer rating snapshot at posting time', max_digits=3, null=True, verbose_name='buyer rating')),
                ('title', models.CharField(max_length=200, verbose_name='title')),
                ('description', models.TextField(blank=True, default='', verbose_name='description')),
                ('budget_amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[core.validators.validate_positive_amount], verbose_name='budget amount')),
                ('currency_code', models.CharField(default='USD', max_length=3, validators=[core.validators.validate_currency_code], verbose_name='currency code')),
                ('category', models.CharField(blank=True, default='', max_length=100, verbose_name='category')),
                ('location', models.CharField(blank=True, default='', max_length=200, verbose_name='location')),
                ('deadline', models.DateTimeField(blank=True, null=True, verbose_name='deadline')),
                ('image_url', models.CharField(blank=True, default='', max_length=500, validators=[core.validators.validate_external_url], verbose_name='image URL')),
                ('status', models.CharField(choices=[('open', 'Open'), ('in_progress', 'In progress'), ('completed', 'Completed'), ('in_dispute', 'In dispute')], default='open', max_length=20, verbose_name='status')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('buyer', models.ForeignKey(blank=True, help_text='Account that posted the lot', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='requests', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'request',
                'verbose_name_plural': 'requests',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['buyer'], name='request_buyer_idx'),
                    models.Index(fields=['status'], name='request_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Offer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('seller_name', models.CharField(max_length=200, verbose_name='seller name')),
                ('seller_avatar_url', models.CharField(blank=True, default='', max_length=500, validators=[core.validators.validate_external_url], verbose_name='seller avatar URL')),
                ('seller_rating', models.DecimalField(blank=True, decimal_places=2, help_text='Seller rating snapshot at offer time', max_digits=3, null=True, verbose_name='seller rating')),
                ('price_amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[core.validators.validate_positive_amount], verbose_name='price amount')),
                ('currency_code', models.CharField(max_length=3, validators=[core.validators.validate_currency_code], verbose_name='currency code')),
                ('message', models.TextField(blank=True, default='', verbose_name='message')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('completed', 'Completed')], default='pending', max_length=20, verbose_name='status')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('request', models.ForeignKey(help_text='Lot this offer answers', on_delete=django.db.models.deletion.CASCADE, related_name='offers', to='core.request')),
                ('seller', models.ForeignKey(blank=True, help_text='Account that made the offer', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='offers', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'offer',
                'verbose_name_plural': 'offers',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['request', 'status'], name='offer_request_status_idx'),
                    models.Index(fields=['seller'], name='offer_seller_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Deal',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('awaiting_shipment', 'Awaiting shipment'), ('awaiting_payment', 'Awaiting payment'), ('awaiting_confirmation', 'Awaiting confirmation'), ('completed', 'Completed'), ('in_dispute', 'In dispute')], default='awaiting_shipment', max_length=30, verbose_name='status')),
                ('total_amount', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='total amount')),
                ('currency_code', models.CharField(max_length=3, validators=[core.validators.validate_currency_code], verbose_name='currency code')),
                ('due_at', models.DateTimeField(blank=True, null=True, verbose_name='due at')),
                ('last_message_text', models.TextField(blank=True, default='', verbose_name='last message')),
                ('last_message_at', models.DateTimeField(blank=True, null=True, verbose_name='last message at')),
                ('dispute_reason', models.TextField(blank=True, default='', verbose_name='dispute reason')),
                ('dispute_opened_at', models.DateTimeField(blank=True, null=True, verbose_name='dispute opened at')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='completed at')),
                ('buyer_rating', models.PositiveSmallIntegerField(blank=True, help_text='Rating the buyer gave the seller', null=True, verbose_name='buyer rating')),
                ('seller_rating', models.PositiveSmallIntegerField(blank=True, help_text='Rating the seller gave the buyer', null=True, verbose_name='seller rating')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('dispute_opened_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('offer', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='deal', to='core.offer')),
                ('request', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='deals', to='core.request')),
            ],
            options={
                'verbose_name': 'deal',
                'verbose_name_plural': 'deals',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='deal_status_idx'),
                    models.Index(fields=['request'], name='deal_request_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DealMilestone',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('label', models.CharField(choices=[('Offer accepted', 'Offer accepted'), ('Shipment', 'Shipment'), ('Payment', 'Payment'), ('Confirmation', 'Confirmation')], max_length=30, verbose_name='label')),
                ('position', models.PositiveSmallIntegerField(verbose_name='position')),
                ('completed', models.BooleanField(default=False, verbose_name='completed')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='completed at')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('deal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='milestones', to='core.deal')),
            ],
            options={
                'verbose_name': 'deal milestone',
                'verbose_name_plural': 'deal milestones',
                'ordering': ['deal', 'position'],
                'constraints': [
                    models.UniqueConstraint(fields=('deal', 'label'), name='unique_milestone_label_per_deal'),
                    models.UniqueConstraint(fields=('deal', 'position'), name='unique_milestone_position_per_deal'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DealFeedback',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rating', models.PositiveSmallIntegerField(help_text='Rating from 1 to 5 stars', validators=[django.core.validators.MinValueValidator(1, message='Rating must be at least 1.'), django.core.validators.MaxValueValidator(5, message='Rating must be at most 5.')], verbose_name='rating')),
                ('comment', models.TextField(blank=True, default='', verbose_name='comment')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('deal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='feedback', to='core.deal')),
                ('reviewee', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='feedback_received', to=settings.AUTH_USER_MODEL)),
                ('reviewer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='feedback_given', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'deal feedback',
                'verbose_name_plural': 'deal feedback',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['reviewee'], name='feedback_reviewee_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('deal', 'reviewer'), name='unique_feedback_per_deal_reviewer'),
                    models.CheckConstraint(condition=models.Q(('rating__gte', 1), ('rating__lte', 5)), name='feedback_rating_between_1_and_5'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OfferMessage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('body', models.TextField(blank=True, default='', verbose_name='body')),
                ('attachment_url', models.CharField(blank=True, default='', max_length=500, validators=[core.validators.validate_external_url], verbose_name='attachment URL')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('offer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages', to='core.offer')),
                ('sender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='offer_messages', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'offer message',
                'verbose_name_plural': 'offer messages',
                'ordering': ['created_at'],
                'indexes': [models.Index(fields=['offer', 'created_at'], name='offer_message_created_idx')],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(max_length=50, verbose_name='type')),
                ('title', models.CharField(max_length=200, verbose_name='title')),
                ('body', models.TextField(blank=True, default='', verbose_name='body')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='metadata')),
                ('is_read', models.BooleanField(default=False, verbose_name='read')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'notification',
                'verbose_name_plural': 'notifications',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['user', 'is_read'], name='notification_user_read_idx')],
            },
        ),
    ]
