"""Environment variable names understood by xray-bridge."""

# Authentication
ENV_XRAY_CLIENT_ID = "XRAY_CLIENT_ID"
ENV_XRAY_CLIENT_SECRET = "XRAY_CLIENT_SECRET"
ENV_XRAY_API_TOKEN = "XRAY_API_TOKEN"
ENV_XRAY_API_URL = "XRAY_API_URL"
ENV_XRAY_USERNAME = "XRAY_USERNAME"
ENV_XRAY_PASSWORD = "XRAY_PASSWORD"

# Jira
ENV_JIRA_PROJECT_KEY = "JIRA_PROJECT_KEY"
ENV_JIRA_TEST_EXECUTION_ISSUE_KEY = "JIRA_TEST_EXECUTION_ISSUE_KEY"
ENV_JIRA_TEST_EXECUTION_ISSUE_SUMMARY = "JIRA_TEST_EXECUTION_ISSUE_SUMMARY"
ENV_JIRA_TEST_EXECUTION_ISSUE_DESCRIPTION = "JIRA_TEST_EXECUTION_ISSUE_DESCRIPTION"
ENV_JIRA_TEST_PLAN_ISSUE_KEY = "JIRA_TEST_PLAN_ISSUE_KEY"

# Xray
ENV_XRAY_UPLOAD_RESULTS = "XRAY_UPLOAD_RESULTS"
ENV_XRAY_UPLOAD_SCREENSHOTS = "XRAY_UPLOAD_SCREENSHOTS"
ENV_XRAY_TEST_ENVIRONMENTS = "XRAY_TEST_ENVIRONMENTS"
ENV_XRAY_STATUS_PASSED = "XRAY_STATUS_PASSED"
ENV_XRAY_STATUS_FAILED = "XRAY_STATUS_FAILED"
ENV_XRAY_STATUS_PENDING = "XRAY_STATUS_PENDING"
ENV_XRAY_STATUS_SKIPPED = "XRAY_STATUS_SKIPPED"

# Plugin
ENV_PLUGIN_ENABLED = "PLUGIN_ENABLED"
ENV_PLUGIN_DEBUG = "PLUGIN_DEBUG"
ENV_PLUGIN_LOG_DIRECTORY = "PLUGIN_LOG_DIRECTORY"
ENV_PLUGIN_NORMALIZE_SCREENSHOT_NAMES = "PLUGIN_NORMALIZE_SCREENSHOT_NAMES"
ENV_PLUGIN_TIMEOUT_SEC = "PLUGIN_TIMEOUT_SEC"
ENV_PLUGIN_HEARTBEAT_INTERVAL_SEC = "PLUGIN_HEARTBEAT_INTERVAL_SEC"

# Cucumber
ENV_CUCUMBER_FEATURE_FILE_EXTENSION = "CUCUMBER_FEATURE_FILE_EXTENSION"
ENV_CUCUMBER_UPLOAD_FEATURES = "CUCUMBER_UPLOAD_FEATURES"
