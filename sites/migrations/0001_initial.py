from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Site',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, help_text='Site or project name', max_length=200)),
                ('location', models.CharField(help_text='Site address or location description', max_length=300)),
                ('start_date', models.DateField(help_text='Date work started')),
                ('end_date', models.DateField(blank=True, help_text='Planned or actual completion date', null=True)),
                ('supervisor', models.CharField(blank=True, max_length=150, null=True)),
                ('manager', models.CharField(blank=True, max_length=150, null=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('completed', 'Completed'), ('on_hold', 'On Hold')], db_index=True, default='active', help_text='Current site status', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Site',
                'verbose_name_plural': 'Sites',
                'ordering': ['name'],
            },
        ),
    ]
