from decimal import Decimal

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, help_text='Material name for display and search', max_length=200)),
                ('unit', models.CharField(help_text='Unit label, e.g. kg, sqft, bag', max_length=30)),
                ('rate_per_unit', models.DecimalField(decimal_places=2, help_text='Cost per unit (must not be negative)', max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('stock_quantity', models.DecimalField(decimal_places=2, default=Decimal('0'), help_text='Current stock quantity', max_digits=12)),
                ('low_stock_threshold', models.DecimalField(decimal_places=2, default=Decimal('10'), help_text='Threshold for low stock alerts', max_digits=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Product',
                'verbose_name_plural': 'Products',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['stock_quantity'], name='product_stock_idx')],
            },
        ),
    ]
