import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='CachedAffiliation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255, unique=True)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='CachedMunicipality',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255, unique=True)),
            ],
            options={
                'verbose_name_plural': 'Cached municipalities',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='GeocodeCache',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(help_text='Lower-cased, trimmed municipality name', max_length=255, unique=True)),
                ('latitude', models.FloatField()),
                ('longitude', models.FloatField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Geocode Cache Entry',
                'verbose_name_plural': 'Geocode Cache Entries',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Officiant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('ontario_id', models.IntegerField(help_text='Record id assigned by the Ontario Data Catalogue', unique=True)),
                ('first_name', models.CharField(blank=True, max_length=255)),
                ('last_name', models.CharField(blank=True, max_length=255)),
                ('municipality', models.CharField(blank=True, db_index=True, max_length=255)),
                ('affiliation', models.CharField(blank=True, db_index=True, max_length=255)),
                ('latitude', models.FloatField(blank=True, null=True)),
                ('longitude', models.FloatField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('last_synced_at', models.DateTimeField(blank=True, help_text='Last time this was synced from external API', null=True)),
            ],
            options={
                'verbose_name': 'Officiant',
                'verbose_name_plural': 'Officiants',
                'ordering': ['last_name', 'first_name', 'id'],
                'indexes': [models.Index(fields=['latitude', 'longitude'], name='officiant_lat_lng_idx')],
            },
        ),
        migrations.CreateModel(
            name='SyncRun',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('started_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('status', models.CharField(choices=[('running', 'Running'), ('completed', 'Completed'), ('failed', 'Failed')], db_index=True, default='running', max_length=20)),
                ('total_fetched', models.IntegerField(default=0)),
                ('total_inserted', models.IntegerField(default=0)),
                ('total_updated', models.IntegerField(default=0)),
                ('geocoded_count', models.IntegerField(default=0)),
                ('error_message', models.TextField(blank=True)),
            ],
            options={
                'ordering': ['-started_at'],
            },
        ),
        migrations.CreateModel(
            name='FeaturedSlot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('slot_type', models.CharField(choices=[('search_top', 'Top of search results'), ('homepage', 'Homepage'), ('category', 'Category page')], default='search_top', max_length=20)),
                ('municipality', models.CharField(blank=True, help_text='Only feature in searches for this municipality (empty = everywhere)', max_length=255, null=True)),
                ('affiliation', models.CharField(blank=True, help_text='Only feature in searches for this affiliation (empty = all)', max_length=255, null=True)),
                ('starts_at', models.DateTimeField()),
                ('ends_at', models.DateTimeField()),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('officiant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='featured_slots', to='officiants.officiant')),
            ],
            options={
                'ordering': ['starts_at', 'id'],
                'indexes': [models.Index(fields=['slot_type', 'is_active'], name='featured_slot_type_active_idx')],
            },
        ),
    ]
