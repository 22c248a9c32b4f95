from .fakes import (
    FakeWallet, FakeBackend, FakeReader, make_config, make_context, not_found,
    status_json, status_record, TOOL_JSON, INTENT_JSON, SUBMIT_JSON,
    TEST_API_URL, TEST_PROJECT_ID, TEST_TOOL_ID, TEST_CHAIN_ID, TEST_ACCOUNT,
    TEST_MERCHANT, TEST_USDC, TEST_TX_HASH, TEST_PAYMENT_ID
)
