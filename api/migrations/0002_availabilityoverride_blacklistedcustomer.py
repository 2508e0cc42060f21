# Admin availability overrides and the booking blacklist

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('api', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='AvailabilityOverride',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('start_at', models.DateTimeField()),
                ('end_at', models.DateTimeField()),
                ('kind', models.CharField(choices=[('open', 'Open'), ('closed', 'Closed')], max_length=10)),
                ('note', models.CharField(blank=True, max_length=255, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('barber', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='availability_overrides', to='api.barber')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='availability_overrides', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['barber', 'start_at'],
                'indexes': [models.Index(fields=['barber', 'start_at'], name='api_availab_barber__7e3f21_idx')],
                'constraints': [models.CheckConstraint(condition=models.Q(('end_at__gt', models.F('start_at'))), name='availability_override_end_after_start')],
            },
        ),
        migrations.CreateModel(
            name='BlacklistedCustomer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('email_norm', models.EmailField(blank=True, db_index=True, max_length=254, null=True)),
                ('phone_norm', models.CharField(blank=True, db_index=True, max_length=20, null=True)),
                ('reason', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Blacklisted customer',
                'constraints': [models.CheckConstraint(condition=models.Q(('email_norm__isnull', False), ('phone_norm__isnull', False), _connector='OR'), name='blacklist_has_contact')],
            },
        ),
    ]
