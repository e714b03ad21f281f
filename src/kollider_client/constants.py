"""
Constants for the Kollider client.
"""

# API Configuration
KOLLIDER_MAINNET = "https://api.kollider.xyz/v1"
KOLLIDER_TESTNET = "https://test.api.kollider.xyz/v1"
DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_DELAY = 1.0
DEFAULT_MAX_RETRIES = 3

# WebSocket Configuration
KOLLIDER_WEBSOCKET = "wss://api.kollider.xyz/v1/ws/"
KOLLIDER_TESTNET_WEBSOCKET = "wss://test.api.kollider.xyz/v1/ws/"
DEFAULT_WS_URL = KOLLIDER_WEBSOCKET
ONESHOT_TIMEOUT = 60.0  # seconds
WS_HEARTBEAT = 30.0
WS_CONNECT_TIMEOUT = 10.0

# Authentication Configuration
WS_AUTH_METHOD = "authentication"
AUTH_SUCCESS_MESSAGE = "success"

# Trading defaults
DEFAULT_SYMBOL = "BTCUSD.PERP"

# HTTP Status Codes
SUCCESS_STATUS_CODE = 200
ERROR_STATUS_CODE = 500
