from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('inventory', '0001_initial'),
        ('sites', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='UsageEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity_used', models.DecimalField(decimal_places=2, help_text="Quantity consumed, in the product's unit", max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('usage_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now, help_text='When the material was used')),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('product', models.ForeignKey(db_constraint=False, help_text='Material used', on_delete=django.db.models.deletion.DO_NOTHING, related_name='usage_events', to='inventory.product')),
                ('site', models.ForeignKey(db_constraint=False, help_text='Site where the material was used', on_delete=django.db.models.deletion.DO_NOTHING, related_name='usage_events', to='sites.site')),
            ],
            options={
                'verbose_name': 'Usage Event',
                'verbose_name_plural': 'Usage Events',
                'ordering': ['-usage_date', 'id'],
                'indexes': [models.Index(fields=['site', 'usage_date'], name='usage_site_date_idx')],
            },
        ),
    ]
