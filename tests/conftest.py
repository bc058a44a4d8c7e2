"""Fixtures shared by all app tests."""

import boto3
import pytest
from django.contrib.auth import get_user_model
from moto import mock_aws

User = get_user_model()

TEST_BUCKET = 'filedrop'


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def mock_s3():
    """Mock S3 service with the filedrop bucket.

    Yields:
        boto3 S3 resource with the bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=TEST_BUCKET)
        yield conn


@pytest.fixture
def bucket(mock_s3):
    """The mocked bucket, for inspecting stored objects.

    Returns:
        boto3 Bucket resource.
    """
    return mock_s3.Bucket(TEST_BUCKET)
