# Vulture whitelist for pytest fixtures and Lambda patterns
# These names are used by pytest/AWS but not explicitly referenced in code

# Lambda entry points (always called by AWS, never by code)
lambda_handler
run_once

# Pytest hooks
pytest_configure
pytest_sessionstart

# Pytest fixtures (injected by pytest, not direct calls)
clock
memory_store
dynamo_store
lambda_env
kv_table
queued
populated
discovered
summarized
listing_fetch
mock_bedrock
mock_fetch
mock_webhook
collaborators

# Common pytest patterns
request  # pytest fixture parameter
monkeypatch  # pytest built-in fixture
capsys  # pytest built-in fixture
caplog  # pytest built-in fixture for log capture

# Mock attributes (set dynamically in tests)
side_effect

# Job handler signature: the runner passes the entry key to every handler
entry_key

# Inspection helpers kept on the store for scripts and the status Lambda
holder_since
get_record
