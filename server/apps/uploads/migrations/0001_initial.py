import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('files', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='UploadSession',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('upload_id', models.CharField(help_text='Opaque session token handed to the client', max_length=64, unique=True)),
                ('file_name', models.CharField(max_length=255)),
                ('total_size', models.BigIntegerField(help_text='Declared size of the whole file in bytes')),
                ('file_hash', models.CharField(help_text='Declared whole-file hash (lowercase hex)', max_length=128)),
                ('total_chunks', models.PositiveIntegerField(blank=True, help_text='Fixed by the first received chunk', null=True)),
                ('state', models.CharField(choices=[('INIT', 'Initialized'), ('RECEIVING', 'Receiving chunks'), ('MERGING', 'Merging'), ('COMPLETE', 'Complete'), ('CANCELLED', 'Cancelled'), ('FAILED', 'Failed')], db_index=True, default='INIT', max_length=16)),
                ('error_message', models.CharField(blank=True, default='', help_text='Reason of the last failed merge', max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True)),
                ('file', models.ForeignKey(blank=True, help_text='Finalized file once the merge completed', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='upload_sessions', to='files.file')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='upload_sessions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Upload Session',
                'verbose_name_plural': 'Upload Sessions',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['state', 'updated_at'], name='uploads_state_updated_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='FileChunk',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('chunk_number', models.PositiveIntegerField(help_text='Zero-based position of the chunk')),
                ('file_name', models.CharField(max_length=255)),
                ('total_size', models.BigIntegerField()),
                ('file_hash', models.CharField(max_length=128)),
                ('chunk_size', models.BigIntegerField(help_text='Size of this chunk in bytes')),
                ('storage_key', models.CharField(help_text='Key in storage: chunks/{upload_id}/{chunk_number}', max_length=512)),
                ('status', models.CharField(choices=[('UPLOADING', 'Uploading'), ('COMPLETED', 'Completed'), ('MERGED', 'Merged')], default='UPLOADING', max_length=16)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('file', models.ForeignKey(blank=True, help_text='File this chunk was merged into', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='chunks', to='files.file')),
                ('session', models.ForeignKey(db_column='upload_id', on_delete=django.db.models.deletion.CASCADE, related_name='chunks', to='uploads.uploadsession', to_field='upload_id')),
                ('uploader', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='file_chunks', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'File Chunk',
                'verbose_name_plural': 'File Chunks',
                'ordering': ['chunk_number'],
                'constraints': [
                    models.UniqueConstraint(fields=('session', 'chunk_number'), name='chunks_upload_number_unique'),
                ],
            },
        ),
    ]
