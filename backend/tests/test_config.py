"""
Test configuration to override settings for testing
"""
import os

# Set test environment variables
test_env_vars = {
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "test-service-role-key",
    "DEBUG": "true",
    "LOG_LEVEL": "DEBUG",
    "BOOTSTRAP_SUPER_ADMIN_EMAILS": '["boss@example.com"]'
}


def setup_test_environment():
    """Setup test environment variables"""
    for key, value in test_env_vars.items():
        os.environ[key] = value


def cleanup_test_environment():
    """Cleanup test environment variables"""
    for key in test_env_vars.keys():
        if key in os.environ:
            del os.environ[key]
