# Generated migration for Shop Wallet models

from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='ShopWallet',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('shop_id', models.CharField(help_text='One wallet per shop', max_length=64, unique=True)),
                ('balance', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14, validators=[django.core.validators.MinValueValidator(0)])),
                ('total_credits', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('total_debits', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('status', models.CharField(choices=[('active', 'Active'), ('suspended', 'Suspended'), ('frozen', 'Frozen')], db_index=True, default='active', max_length=20)),
                ('version', models.PositiveIntegerField(default=0, help_text='Optimistic concurrency revision')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Shop Wallet',
                'verbose_name_plural': 'Shop Wallets',
                'db_table': 'shop_wallets',
                'ordering': ('-created_at',),
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('balance__gte', 0)), name='shop_wallet_balance_non_negative'),
                    models.CheckConstraint(condition=models.Q(('total_credits__gte', 0)), name='shop_wallet_credits_non_negative'),
                    models.CheckConstraint(condition=models.Q(('total_debits__gte', 0)), name='shop_wallet_debits_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='WalletTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('transaction_type', models.CharField(choices=[('credit', 'Credit'), ('debit', 'Debit'), ('adjustment', 'Adjustment')], max_length=20)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('previous_balance', models.DecimalField(decimal_places=2, max_digits=14)),
                ('new_balance', models.DecimalField(decimal_places=2, max_digits=14)),
                ('description', models.CharField(max_length=255)),
                ('source', models.CharField(choices=[('airtime_sale', 'Airtime Sale'), ('order_credit', 'Order Credit'), ('admin_adjustment', 'Admin Adjustment'), ('withdrawal', 'Withdrawal')], max_length=30)),
                ('related_transaction', models.CharField(blank=True, default='', help_text='Id of the airtime sale or order behind this entry', max_length=64)),
                ('transaction_model', models.CharField(blank=True, choices=[('AirtimeTransaction', 'AirtimeTransaction'), ('Order', 'Order')], default='', max_length=30)),
                ('performed_by', models.CharField(blank=True, default='', max_length=64)),
                ('timestamp', models.DateTimeField(default=django.utils.timezone.now)),
                ('wallet', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='transactions', to='wallets.shopwallet')),
            ],
            options={
                'verbose_name': 'Wallet Transaction',
                'verbose_name_plural': 'Wallet Transactions',
                'db_table': 'shop_wallet_transactions',
                'ordering': ('-timestamp', '-id'),
                'indexes': [
                    models.Index(fields=['wallet', '-timestamp'], name='idx_wallet_txn_timestamp'),
                    models.Index(fields=['wallet', 'transaction_type'], name='idx_wallet_txn_type'),
                    models.Index(fields=['wallet', 'source'], name='idx_wallet_txn_source'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('amount__gt', 0)), name='wallet_txn_amount_positive'),
                    models.CheckConstraint(condition=models.Q(('new_balance__gte', 0)), name='wallet_txn_new_balance_non_negative'),
                ],
            },
        ),
    ]
