schema = {
    "type": "object",
    "properties": {
        "SYNC_ENDPOINT_URL": {"type": "string"},
        "SYNC_API_KEY": {"type": "string"},
        "SYNC_REQUEST_TIMEOUT": {"type": ["number", "string"]},
        "AUTO_CHECKOUT_ON_EXIT": {"type": ["boolean", "string"]},
    },
    "additionalProperties": False,
    "minProperties": 1,
}
