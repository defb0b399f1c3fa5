import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('catalog', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Banner',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=100)),
                ('description', models.CharField(max_length=200)),
                ('image_url', models.URLField(max_length=500)),
                ('image_public_id', models.CharField(blank=True, max_length=255)),
                ('button_text', models.CharField(default='Shop Now', max_length=50)),
                ('button_link', models.CharField(default='/products', max_length=500)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('order', models.IntegerField(default=0)),
                ('start_date', models.DateTimeField(default=django.utils.timezone.now)),
                ('end_date', models.DateTimeField(blank=True, null=True)),
                ('target_audience', models.CharField(choices=[('all', 'All'), ('new_users', 'New Users'), ('returning_users', 'Returning Users'), ('premium_users', 'Premium Users')], default='all', max_length=20)),
                ('category', models.CharField(choices=[('electronics', 'Electronics'), ('fashion', 'Fashion'), ('home', 'Home'), ('beauty', 'Beauty'), ('sports', 'Sports'), ('books', 'Books'), ('general', 'General')], default='general', max_length=20)),
                ('priority', models.PositiveSmallIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(10)])),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'banners',
                'ordering': ['order', 'created_at', 'id'],
                'indexes': [
                    models.Index(fields=['is_active', 'start_date', 'end_date'], name='banners_window_idx'),
                    models.Index(fields=['order'], name='banners_order_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='HomepageSection',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=100)),
                ('description', models.CharField(blank=True, max_length=500)),
                ('type', models.CharField(choices=[('category', 'Category'), ('featured', 'Featured'), ('custom', 'Custom'), ('banner', 'Banner')], default='category', max_length=20)),
                ('category', models.CharField(blank=True, max_length=100)),
                ('max_products', models.PositiveSmallIntegerField(default=6, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(20)])),
                ('is_visible', models.BooleanField(db_index=True, default=True)),
                ('order', models.PositiveIntegerField(default=0)),
                ('banner_image_public_id', models.CharField(blank=True, max_length=255)),
                ('banner_image_url', models.URLField(blank=True, max_length=500)),
                ('banner_link', models.CharField(blank=True, max_length=500)),
                ('banner_text', models.CharField(blank=True, max_length=200)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_sections', to=settings.AUTH_USER_MODEL)),
                ('last_modified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='modified_sections', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'homepage_sections',
                'ordering': ['order', 'created_at', 'id'],
                'indexes': [
                    models.Index(fields=['is_visible', 'order'], name='sections_visible_order_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='HomepageSectionProduct',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('position', models.PositiveIntegerField(default=0)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='section_entries', to='catalog.product')),
                ('section', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='entries', to='merchandising.homepagesection')),
            ],
            options={
                'db_table': 'homepage_section_products',
                'ordering': ['position', 'id'],
            },
        ),
        migrations.AddField(
            model_name='homepagesection',
            name='products',
            field=models.ManyToManyField(blank=True, related_name='homepage_sections', through='merchandising.HomepageSectionProduct', to='catalog.product'),
        ),
        migrations.AddConstraint(
            model_name='homepagesectionproduct',
            constraint=models.UniqueConstraint(fields=('section', 'product'), name='unique_section_product'),
        ),
    ]
