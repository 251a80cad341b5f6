import uuid
from decimal import Decimal

import django.core.serializers.json
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Account',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('contact_key', models.CharField(max_length=255, unique=True)),
                ('referral_code', models.CharField(max_length=20, unique=True)),
                ('referred_by', models.CharField(blank=True, default='', max_length=20)),
                ('referral_count', models.PositiveIntegerField(default=0)),
                ('balance', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('last_origin', models.CharField(blank=True, default='', max_length=64)),
                ('client_signature', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='Survey',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('key', models.CharField(max_length=50, unique=True)),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True, default='')),
                ('reward_amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('reward_amount__gte', 0)), name='survey_reward_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SystemConfig',
            fields=[
                ('key', models.CharField(max_length=100, primary_key=True, serialize=False)),
                ('value', models.TextField()),
                ('description', models.TextField(blank=True, default='')),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='SurveyQuestion',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('key', models.CharField(max_length=50)),
                ('text', models.TextField()),
                ('kind', models.CharField(choices=[('single_choice', 'Single choice'), ('multi_choice', 'Multiple choice'), ('free_text', 'Free text')], max_length=20)),
                ('options', models.JSONField(blank=True, null=True)),
                ('is_required', models.BooleanField(default=True)),
                ('order_index', models.IntegerField(default=0)),
                ('survey', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='questions', to='core.survey')),
            ],
            options={
                'ordering': ['order_index', 'id'],
                'constraints': [
                    models.UniqueConstraint(fields=('survey', 'key'), name='unique_question_key_per_survey'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Answer',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('answer_text', models.TextField(blank=True, null=True)),
                ('answer_options', models.JSONField(blank=True, null=True)),
                ('answered_at', models.DateTimeField(auto_now_add=True)),
                ('account', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='answers', to='core.account')),
                ('survey', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to='core.survey')),
                ('question', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to='core.surveyquestion')),
            ],
            options={
                'constraints': [
                    models.UniqueConstraint(fields=('account', 'survey', 'question'), name='unique_answer_per_question'),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('answer_options__isnull', True), ('answer_text__isnull', False)),
                            models.Q(('answer_options__isnull', False), ('answer_text__isnull', True)),
                            _connector='OR',
                        ),
                        name='answer_text_xor_options',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='CompletionRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('reward_amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('completed_at', models.DateTimeField(auto_now_add=True)),
                ('account', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='completions', to='core.account')),
                ('survey', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='completions', to='core.survey')),
            ],
            options={
                'constraints': [
                    models.UniqueConstraint(fields=('account', 'survey'), name='unique_completion_per_account_survey'),
                ],
            },
        ),
        migrations.CreateModel(
            name='WithdrawalRequest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('destination', models.CharField(max_length=255)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Processing'), ('completed', 'Completed'), ('failed', 'Failed')], default='pending', max_length=16)),
                ('payout_reference', models.CharField(blank=True, default='', max_length=100)),
                ('admin_notes', models.TextField(blank=True, default='')),
                ('requested_at', models.DateTimeField(auto_now_add=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
                ('account', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='withdrawals', to='core.account')),
            ],
            options={
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('amount__gt', 0)), name='withdrawal_amount_positive'),
                ],
                'indexes': [
                    models.Index(fields=['status'], name='withdrawal_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='LedgerEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('kind', models.CharField(choices=[('reward_credit', 'Survey reward'), ('referral_bonus_credit', 'Referral bonus'), ('withdrawal_debit_pending', 'Withdrawal (pending)'), ('withdrawal_debit_settled', 'Withdrawal (settled)')], max_length=32)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('description', models.TextField(blank=True, default='')),
                ('reference', models.CharField(blank=True, default='', max_length=100)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed'), ('failed', 'Failed'), ('cancelled', 'Cancelled')], default='completed', max_length=16)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
                ('account', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='ledger_entries', to='core.account')),
                ('withdrawal', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='ledger_entry', to='core.withdrawalrequest')),
            ],
            options={
                'ordering': ['created_at'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('kind', 'referral_bonus_credit')), fields=('account',), name='unique_referral_bonus_per_account'),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('amount__gte', 0), ('kind__in', ['reward_credit', 'referral_bonus_credit'])),
                            models.Q(('amount__lt', 0), ('kind__in', ['withdrawal_debit_pending', 'withdrawal_debit_settled'])),
                            _connector='OR',
                        ),
                        name='ledger_amount_sign_matches_kind',
                    ),
                ],
                'indexes': [
                    models.Index(fields=['account', 'kind', 'status'], name='ledger_account_kind_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Referral',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('referral_code', models.CharField(max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('referrer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='referrals_made', to='core.account')),
                ('referred', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='referral', to='core.account')),
            ],
        ),
        migrations.CreateModel(
            name='ActivityLogEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('event_kind', models.CharField(max_length=50)),
                ('description', models.TextField(blank=True, default='')),
                ('origin', models.CharField(blank=True, default='', max_length=64)),
                ('client_signature', models.TextField(blank=True, default='')),
                ('payload', models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('account', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to='core.account')),
            ],
            options={
                'indexes': [
                    models.Index(fields=['account', 'event_kind'], name='activity_account_event_idx'),
                ],
            },
        ),
    ]
