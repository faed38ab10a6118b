from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Client',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('phone', models.CharField(blank=True, max_length=50)),
                ('address', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='InvoiceSequence',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=50, unique=True)),
                ('last_value', models.PositiveBigIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='Matter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255)),
                ('case_type', models.CharField(blank=True, max_length=100)),
                ('status', models.CharField(choices=[('open', 'Open'), ('pending', 'Pending'), ('closed', 'Closed'), ('archived', 'Archived')], db_index=True, default='open', max_length=20)),
                ('billing_mode', models.CharField(choices=[('hourly', 'Hourly'), ('flat_fee', 'Flat Fee')], default='hourly', max_length=20)),
                ('hourly_rate_cents', models.PositiveBigIntegerField(blank=True, null=True)),
                ('flat_fee_cents', models.PositiveBigIntegerField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('client', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='matters', to='billing.client')),
            ],
            options={
                'ordering': ['-created_at'],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('billing_mode', 'hourly'), ('flat_fee_cents__isnull', True)),
                            models.Q(('billing_mode', 'flat_fee'), ('flat_fee_cents__isnull', False), ('hourly_rate_cents__isnull', True)),
                            _connector='OR',
                        ),
                        name='matter_billing_terms_match_mode',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='Invoice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('invoice_sequence', models.PositiveBigIntegerField(unique=True)),
                ('invoice_number', models.CharField(max_length=50, unique=True)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('sent', 'Sent'), ('paid', 'Paid'), ('overdue', 'Overdue'), ('void', 'Void')], db_index=True, default='draft', max_length=20)),
                ('client_name', models.CharField(max_length=255)),
                ('client_email', models.EmailField(blank=True, max_length=254)),
                ('matter_title', models.CharField(max_length=255)),
                ('billing_mode', models.CharField(choices=[('hourly', 'Hourly'), ('flat_fee', 'Flat Fee')], max_length=20)),
                ('currency', models.CharField(default='USD', max_length=3)),
                ('included_entry_ids', models.JSONField(default=list)),
                ('subtotal_cents', models.BigIntegerField()),
                ('total_cents', models.BigIntegerField()),
                ('issue_date', models.DateField()),
                ('due_date', models.DateField()),
                ('notes', models.TextField(blank=True)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('voided_at', models.DateTimeField(blank=True, null=True)),
                ('pdf_url', models.URLField(blank=True, max_length=500)),
                ('pdf_file_name', models.CharField(blank=True, max_length=255)),
                ('pdf_exported_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('client', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='invoices', to='billing.client')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_invoices', to=settings.AUTH_USER_MODEL)),
                ('matter', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='invoices', to='billing.matter')),
            ],
            options={
                'ordering': ['-invoice_sequence'],
                'indexes': [
                    models.Index(fields=['matter', 'status'], name='billing_inv_matter_status_idx'),
                    models.Index(fields=['status', 'due_date'], name='billing_inv_status_due_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(('subtotal_cents__gte', 0), ('total_cents__gte', 0)),
                        name='invoice_totals_non_negative',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='TimeEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('description', models.TextField()),
                ('ai_narrative', models.TextField(blank=True)),
                ('duration_minutes', models.PositiveIntegerField()),
                ('hourly_rate_cents', models.PositiveBigIntegerField(blank=True, help_text='Rate in force when the work was logged', null=True)),
                ('is_billable', models.BooleanField(default=True)),
                ('entry_date', models.DateField(db_index=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='time_entries', to=settings.AUTH_USER_MODEL)),
                ('invoice', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='time_entries', to='billing.invoice')),
                ('matter', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='time_entries', to='billing.matter')),
            ],
            options={
                'verbose_name_plural': 'Time entries',
                'ordering': ['entry_date', 'id'],
                'indexes': [
                    models.Index(fields=['matter', 'is_billable', 'invoice'], name='billing_te_unbilled_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('duration_minutes__gt', 0)), name='time_entry_duration_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InvoiceLineItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('entry_date', models.DateField(blank=True, null=True)),
                ('description', models.TextField()),
                ('duration_minutes', models.PositiveIntegerField(blank=True, null=True)),
                ('hourly_rate_cents', models.PositiveBigIntegerField(blank=True, null=True)),
                ('amount_cents', models.BigIntegerField()),
                ('sort_order', models.IntegerField(default=0)),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='line_items', to='billing.invoice')),
                ('time_entry', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='billing.timeentry')),
            ],
            options={
                'ordering': ['sort_order', 'id'],
            },
        ),
        migrations.CreateModel(
            name='BillingActivity',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('entity_type', models.CharField(choices=[('time_entry', 'Time Entry'), ('invoice', 'Invoice')], max_length=20)),
                ('entity_id', models.BigIntegerField()),
                ('action', models.CharField(choices=[('created', 'Created'), ('status_changed', 'Status Changed'), ('marked_overdue', 'Marked Overdue'), ('exported_pdf', 'PDF Exported')], max_length=50)),
                ('details', models.JSONField(blank=True, default=dict)),
                ('is_system', models.BooleanField(default=False)),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name_plural': 'Billing activities',
                'ordering': ['-timestamp'],
                'indexes': [
                    models.Index(fields=['entity_type', 'entity_id', '-timestamp'], name='billing_act_entity_idx'),
                ],
            },
        ),
    ]
