"""
Tests for GitHub token lookup.
"""

import json
import os
from unittest.mock import patch

import boto3
from moto import mock_aws

from shared.github_token import get_github_token


class TestGetGithubToken:
    def test_env_fallback(self):
        with patch.dict(os.environ, {"GITHUB_TOKEN": "ghp_env"}):
            assert get_github_token() == "ghp_env"

    def test_cached(self):
        with patch.dict(os.environ, {"GITHUB_TOKEN": "ghp_first"}):
            get_github_token()
        with patch.dict(os.environ, {"GITHUB_TOKEN": "ghp_second"}):
            assert get_github_token() == "ghp_first"

    def test_secret_json(self):
        with mock_aws():
            client = boto3.client("secretsmanager", region_name="us-east-1")
            arn = client.create_secret(
                Name="usedby/github", SecretString=json.dumps({"token": "ghp_secret"})
            )["ARN"]

            assert get_github_token(secret_arn=arn) == "ghp_secret"

    def test_secret_plain_string(self):
        with mock_aws():
            client = boto3.client("secretsmanager", region_name="us-east-1")
            arn = client.create_secret(Name="usedby/github", SecretString="ghp_plain")["ARN"]

            assert get_github_token(secret_arn=arn) == "ghp_plain"

    def test_missing_secret_falls_back_to_env(self):
        with mock_aws(), patch.dict(os.environ, {"GITHUB_TOKEN": "ghp_env"}):
            arn = "arn:aws:secretsmanager:us-east-1:123456789012:secret:missing"
            assert get_github_token(secret_arn=arn) == "ghp_env"
