# Generated migration for Offer models

import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Offer',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(help_text='Offer name shown to shops', max_length=100)),
                ('description', models.CharField(blank=True, max_length=500)),
                ('code', models.CharField(blank=True, help_text='Optional redemption code (stored uppercase)', max_length=20, null=True, unique=True)),
                ('offer_type', models.CharField(choices=[('percentage_discount', 'Percentage Discount'), ('fixed_discount', 'Fixed Amount Discount'), ('buy_x_get_y', 'Buy X Get Y'), ('free_delivery', 'Free Delivery'), ('bundle_offer', 'Bundle Offer'), ('category_discount', 'Category Discount')], max_length=30)),
                ('discount_value', models.DecimalField(blank=True, decimal_places=2, help_text='Percentage for percentage/category offers, amount for fixed offers', max_digits=14, null=True, validators=[django.core.validators.MinValueValidator(0)])),
                ('max_discount', models.DecimalField(blank=True, decimal_places=2, help_text='Cap applied to percentage-based discounts', max_digits=14, null=True, validators=[django.core.validators.MinValueValidator(0)])),
                ('applicable_to', models.CharField(choices=[('all', 'All Orders'), ('products', 'Specific Products'), ('categories', 'Specific Categories')], default='all', max_length=20)),
                ('products', models.JSONField(blank=True, default=list, help_text='Product ids for product-scoped offers')),
                ('categories', models.JSONField(blank=True, default=list, help_text='Category ids for category-scoped offers')),
                ('min_order_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14, validators=[django.core.validators.MinValueValidator(0)])),
                ('min_quantity', models.PositiveIntegerField(default=0)),
                ('max_uses', models.PositiveIntegerField(blank=True, help_text='Maximum total redemptions', null=True)),
                ('max_uses_per_user', models.PositiveIntegerField(blank=True, help_text='Maximum redemptions per user', null=True)),
                ('buy_quantity', models.PositiveIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1)])),
                ('get_quantity', models.PositiveIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1)])),
                ('bundle_products', models.JSONField(blank=True, default=list, help_text='Bundle lines as [{"product": id, "quantity": n}]')),
                ('bundle_price', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True, validators=[django.core.validators.MinValueValidator(0)])),
                ('total_uses', models.PositiveIntegerField(default=0, help_text='Current total redemption count')),
                ('total_discount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('from_date', models.DateTimeField(db_index=True)),
                ('to_date', models.DateTimeField(db_index=True)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('active', 'Active'), ('scheduled', 'Scheduled'), ('expired', 'Expired'), ('disabled', 'Disabled')], db_index=True, default='draft', max_length=20)),
                ('is_visible', models.BooleanField(default=True)),
                ('priority', models.IntegerField(default=0, help_text='Higher priority offers are listed first')),
                ('stackable', models.BooleanField(default=False, help_text='Advisory: can be combined with other offers')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_offers', to=settings.AUTH_USER_MODEL)),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='updated_offers', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Offer',
                'verbose_name_plural': 'Offers',
                'db_table': 'offers',
                'ordering': ('-priority', '-created_at'),
                'indexes': [
                    models.Index(fields=['offer_type'], name='idx_offer_type'),
                    models.Index(fields=['status', 'is_visible', 'from_date', 'to_date'], name='idx_offer_active_window'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('to_date__gt', models.F('from_date'))), name='offer_window_ordered'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OfferUsage',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('user_id', models.CharField(db_index=True, help_text='Redeeming user', max_length=64)),
                ('order_id', models.CharField(help_text='Order the offer was applied to', max_length=64)),
                ('discount_applied', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('used_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('offer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='usages', to='offers.offer')),
            ],
            options={
                'verbose_name': 'Offer Usage',
                'verbose_name_plural': 'Offer Usages',
                'db_table': 'offer_usages',
                'ordering': ('used_at', 'id'),
                'indexes': [
                    models.Index(fields=['offer', 'user_id'], name='idx_offer_usage_user'),
                    models.Index(fields=['order_id'], name='idx_offer_usage_order'),
                ],
            },
        ),
    ]
